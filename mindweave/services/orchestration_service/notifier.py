"""Emergency-contact notifier.

Per ADR-004: when a crisis assessment triggers emergency contact, an
event goes to a Kinesis stream and downstream responders pick it up.
The engine never waits on this: the crisis reply is already built by
the time the notification is sent.

Failure Handling:
    - notify() returns False instead of raising
    - Failures are logged at CRITICAL level with the payload so the
      event can be replayed by hand
"""
import json
import logging
import os
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmergencyContactEvent:
    """Immutable emergency-contact request for one crisis message."""
    message_id: str
    conversation_id: str
    user_id_hash: str
    urgency_score: int
    risk_factors: List[str] = field(default_factory=list)
    matched_phrases: List[str] = field(default_factory=list)
    risk_level: str = "crisis"
    event_type: str = "orchestration.emergency_contact"
    engine_version: str = ""
    event_id: str = field(default_factory=lambda: f"evt_{uuid.uuid4().hex[:12]}")
    timestamp: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def from_assessment(
        cls,
        assessment,
        message_id: str,
        conversation_id: str,
        user_id_hash: str,
        engine_version: str = "",
    ) -> "EmergencyContactEvent":
        return cls(
            message_id=message_id,
            conversation_id=conversation_id,
            user_id_hash=user_id_hash,
            urgency_score=assessment.urgency_score,
            risk_factors=list(assessment.risk_factors),
            matched_phrases=list(assessment.matched_phrases),
            risk_level=assessment.risk_level.value,
            engine_version=engine_version,
        )

    def to_kinesis_payload(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "timestamp": self.timestamp.isoformat() + "Z",
            "source": "orchestration-service",
            "data": {
                "message_id": self.message_id,
                "conversation_id": self.conversation_id,
                "user_id_hash": self.user_id_hash,
                "risk_level": self.risk_level,
                "urgency_score": self.urgency_score,
                "risk_factors": list(self.risk_factors),
                "matched_phrases": list(self.matched_phrases),
                "engine_version": self.engine_version,
            },
        }


class EmergencyNotifier(ABC):
    """Sends emergency-contact events. Implementations must not raise."""

    @abstractmethod
    def notify(self, event: EmergencyContactEvent) -> bool:
        """Send the event. Returns True if it was accepted downstream."""
        pass


class KinesisEmergencyNotifier(EmergencyNotifier):
    """Puts emergency-contact events on a Kinesis stream.

    Records are partitioned by user hash so one user's events stay
    ordered on a single shard.
    """

    def __init__(
        self,
        stream_name: str = "mindweave-emergency-contacts",
        enabled: bool = True,
        region: Optional[str] = None,
    ):
        self.stream_name = stream_name
        self.enabled = enabled
        self.region = region or os.getenv("AWS_REGION", "us-east-1")
        self._kinesis_client = None

        logger.info(
            "EMERGENCY_NOTIFIER_INITIALIZED",
            extra={
                "stream_name": stream_name,
                "enabled": enabled,
                "region": self.region,
            }
        )

    @classmethod
    def from_env(cls) -> "KinesisEmergencyNotifier":
        return cls(
            stream_name=os.environ.get("EMERGENCY_STREAM_NAME", "mindweave-emergency-contacts"),
            enabled=os.environ.get("EMERGENCY_NOTIFY_ENABLED", "true").lower() == "true",
            region=os.environ.get("AWS_REGION"),
        )

    @property
    def kinesis_client(self):
        """Kinesis client, created on first use."""
        if self._kinesis_client is None and self.enabled:
            try:
                import boto3
                self._kinesis_client = boto3.client("kinesis", region_name=self.region)
            except Exception as e:
                logger.error(
                    "KINESIS_CLIENT_INIT_FAILED",
                    extra={"error": str(e), "stream_name": self.stream_name}
                )
        return self._kinesis_client

    def notify(self, event: EmergencyContactEvent) -> bool:
        if not self.enabled:
            logger.info(
                "EMERGENCY_NOTIFY_SKIPPED",
                extra={"event_id": event.event_id, "reason": "notifications_disabled"}
            )
            return False

        payload = json.dumps(event.to_kinesis_payload())
        client = self.kinesis_client
        if client is None:
            logger.critical(
                "EMERGENCY_EVENT_FALLBACK_LOG",
                extra={
                    "event_id": event.event_id,
                    "message_id": event.message_id,
                    "payload": payload,
                    "reason": "kinesis_client_unavailable",
                    "action": "MANUAL_PROCESSING_REQUIRED",
                }
            )
            return False

        try:
            response = client.put_record(
                StreamName=self.stream_name,
                Data=payload,
                PartitionKey=event.user_id_hash,
            )
        except Exception as e:
            logger.critical(
                "EMERGENCY_EVENT_PUBLISH_FAILED",
                extra={
                    "event_id": event.event_id,
                    "message_id": event.message_id,
                    "user_id_hash": event.user_id_hash,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "payload": payload,
                    "action": "MANUAL_REVIEW_REQUIRED",
                }
            )
            return False

        logger.critical(
            "EMERGENCY_EVENT_PUBLISHED",
            extra={
                "event_id": event.event_id,
                "message_id": event.message_id,
                "user_id_hash": event.user_id_hash,
                "shard_id": response.get("ShardId"),
                "sequence_number": response.get("SequenceNumber"),
            }
        )
        return True

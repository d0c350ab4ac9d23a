"""Agent Service: the five analysis agents behind one fail-safe contract.

ADR-007: Every agent has a deterministic fallback. execute() never raises;
failures come back as success=False results that lean toward caution.

Components:
- base_agent.py: BaseAgent contract, timeout and cache handling
- emotion_analyzer.py: keyword/VAD emotion scoring
- memory_manager.py: history retrieval and recurring themes
- crisis_monitor.py: RiskScorer wrapper with conservative fallback
- therapy_advisor.py: approach and technique selection
- progress_tracker.py: progress/setback signals and valence trend
- memory_store.py: conversation history collaborator

Usage:
    agent = EmotionAnalyzerAgent()
    result = await agent.execute(snapshot, "Analyze emotional state")
"""

from .base_agent import AgentAnalysis, AgentAnalysisError, BaseAgent
from .config import AgentConfig, DEFAULT_AGENT_CONFIGS
from .crisis_monitor import CrisisMonitorAgent
from .emotion_analyzer import EmotionAnalysis, EmotionAnalyzerAgent, score_emotions
from .memory_manager import MemoryManagerAgent, MemoryRetrieval
from .memory_store import InMemoryMemoryStore, MemoryEntry, MemoryStore
from .progress_tracker import ProgressReport, ProgressTrackerAgent
from .therapy_advisor import TherapyAdvice, TherapyAdvisorAgent

__all__ = [
    "AgentAnalysis",
    "AgentAnalysisError",
    "BaseAgent",
    "AgentConfig",
    "DEFAULT_AGENT_CONFIGS",
    "CrisisMonitorAgent",
    "EmotionAnalysis",
    "EmotionAnalyzerAgent",
    "score_emotions",
    "MemoryManagerAgent",
    "MemoryRetrieval",
    "InMemoryMemoryStore",
    "MemoryEntry",
    "MemoryStore",
    "ProgressReport",
    "ProgressTrackerAgent",
    "TherapyAdvice",
    "TherapyAdvisorAgent",
]

"""Team orchestration core: roster, decomposition, execution, reflection and status."""

from .engine import TeamEngine, make_journal_store
from .journal import Journal, make_bus_entry
from .layout import TeamLayout
from .messages import (
	AssistantMessage,
	ChatCompletionService,
	ChatResponse,
	SystemMessage,
	ToolCall,
	ToolMessage,
	UserMessage,
)
from .models import (
	AgentConfig,
	AgentMeta,
	AgentStepResult,
	BusEntry,
	BusEntryType,
	BusTokenUsage,
	CritiqueResult,
	DecompositionPlan,
	DelegationStep,
	ReflectionSummary,
	TeamAgentCreateInput,
	TeamConfig,
	TeamSettingsUpdateInput,
	TeamStatus,
)
from .notify import CallbackSink, LoggingSink, NotificationSink, NullSink

__all__ = [
	"AgentConfig",
	"AgentMeta",
	"AgentStepResult",
	"AssistantMessage",
	"BusEntry",
	"BusEntryType",
	"BusTokenUsage",
	"CallbackSink",
	"ChatCompletionService",
	"ChatResponse",
	"CritiqueResult",
	"DecompositionPlan",
	"DelegationStep",
	"Journal",
	"LoggingSink",
	"NotificationSink",
	"NullSink",
	"ReflectionSummary",
	"SystemMessage",
	"TeamAgentCreateInput",
	"TeamConfig",
	"TeamEngine",
	"TeamLayout",
	"TeamSettingsUpdateInput",
	"TeamStatus",
	"ToolCall",
	"ToolMessage",
	"UserMessage",
	"make_bus_entry",
	"make_journal_store",
]

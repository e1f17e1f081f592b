from crewdesk.models.planner import Assignment, SelectionPolicy
from crewdesk.models.providers import CliProvider, CloudProvider, OllamaProvider, Provider, build_providers
from crewdesk.models.registry import ProviderRegistry, TeamMember

__all__ = [
    "Assignment",
    "CliProvider",
    "CloudProvider",
    "OllamaProvider",
    "Provider",
    "ProviderRegistry",
    "SelectionPolicy",
    "TeamMember",
    "build_providers",
]

"""Provider registry and discovery."""

import logging
from typing import Type

from ..models import Session
from .base import SessionProvider

logger = logging.getLogger(__name__)

# Registry of all available providers
_PROVIDERS: dict[str, Type[SessionProvider]] = {}


def register_provider(provider_class: Type[SessionProvider]) -> Type[SessionProvider]:
    """Decorator to register a provider class."""
    _PROVIDERS[provider_class.name] = provider_class
    return provider_class


def get_provider(name: str) -> SessionProvider | None:
    """Get an instance of a provider by name."""
    provider_class = _PROVIDERS.get(name)
    if provider_class:
        return provider_class()
    return None


def get_all_providers() -> list[SessionProvider]:
    return [cls() for cls in _PROVIDERS.values()]


def get_available_providers() -> list[SessionProvider]:
    """Providers whose session directory exists on this machine."""
    return [p for p in get_all_providers() if p.is_available()]


def discover_all_sessions(providers: list[SessionProvider] | None = None) -> list[Session]:
    """Discover sessions from all available providers, newest first."""
    all_sessions: list[Session] = []
    for provider in providers if providers is not None else get_available_providers():
        try:
            all_sessions.extend(provider.load_sessions())
        except OSError as e:
            logger.warning(f"{provider.name}: failed to load sessions: {e}")

    # Sort by modified time, newest first
    all_sessions.sort(key=_last_active, reverse=True)
    return all_sessions


def _last_active(session: Session) -> float:
    moment = session.modified_time or session.created_time
    return moment.timestamp() if moment else 0


def find_session(id_or_prefix: str, providers: list[SessionProvider] | None = None) -> tuple[Session, SessionProvider] | None:
    """Locate a session by full id, falling back to a unique id prefix."""
    candidates: list[tuple[Session, SessionProvider]] = []
    for provider in providers if providers is not None else get_available_providers():
        try:
            sessions = provider.load_sessions()
        except OSError as e:
            logger.warning(f"{provider.name}: failed to load sessions: {e}")
            continue
        for session in sessions:
            if session.id == id_or_prefix:
                return session, provider
            if session.id.startswith(id_or_prefix):
                candidates.append((session, provider))

    if len(candidates) == 1:
        return candidates[0]
    if len(candidates) > 1:
        logger.debug(f"Ambiguous session prefix {id_or_prefix!r}: {len(candidates)} matches")
    return None


# Import providers to trigger registration
from . import claude_code  # noqa: F401, E402
from . import cursor  # noqa: F401, E402

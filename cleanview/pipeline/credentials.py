"""
API key gate: decides whether the removal flow may call Veo, and runs the
key-selection prompt when it may not.

The provider gives no signal that distinguishes "user picked a key" from
"user closed the selector", so a selector that returns without raising is
taken as success. A downstream rejection (see SessionController) can force
the prompt back on screen without the gate re-checking anything.
"""

import asyncio
import logging
import os
from typing import Callable, List, Optional, Protocol

from dotenv import load_dotenv

from ..config import API_KEY_ENV_VARS
from .models import CredentialState

logger = logging.getLogger(__name__)


class CredentialProvider(Protocol):
    async def has_selected_credential(self) -> bool: ...

    async def open_credential_selector(self) -> None: ...


class EnvCredentialProvider:
    """
    Reads the key from the process environment.

    "Selecting" a key means the operator writes it to `.env`; the selector
    reloads that file over the current environment.
    """

    def __init__(self, env_vars=API_KEY_ENV_VARS, dotenv_path: Optional[str] = None):
        self.env_vars = tuple(env_vars)
        self.dotenv_path = dotenv_path

    def api_key(self) -> str:
        for name in self.env_vars:
            value = (os.environ.get(name) or "").strip()
            if value:
                return value
        return ""

    async def has_selected_credential(self) -> bool:
        return bool(self.api_key())

    async def open_credential_selector(self) -> None:
        load_dotenv(self.dotenv_path, override=True)
        logger.info(f"Reloaded credentials from {self.dotenv_path or '.env'}")


class CredentialGate:
    def __init__(self, provider: CredentialProvider):
        self.provider = provider
        self._state = CredentialState.UNKNOWN
        self._force_prompt = False
        self._lock = asyncio.Lock()
        self._subscribers: List[Callable[[], None]] = []

    @property
    def state(self) -> CredentialState:
        return self._state

    @property
    def prompt_visible(self) -> bool:
        return self._state != CredentialState.PRESENT or self._force_prompt

    def subscribe(self, callback: Callable[[], None]):
        """Register a callback fired each time a key becomes usable."""
        self._subscribers.append(callback)

    def _notify(self):
        for callback in list(self._subscribers):
            callback()

    async def check_credential(self) -> CredentialState:
        """Ask the provider whether a key is selected. Fails closed."""
        async with self._lock:
            try:
                selected = await self.provider.has_selected_credential()
            except Exception as e:
                logger.warning(f"Credential check failed, treating as absent: {e}")
                self._state = CredentialState.ABSENT
                return self._state

            if not selected:
                self._state = CredentialState.ABSENT
                return self._state

            self._state = CredentialState.PRESENT
            self._force_prompt = False
            self._notify()
            return self._state

    async def prompt_for_credential(self) -> CredentialState:
        """Run the provider's selector and optimistically assume a key was picked."""
        async with self._lock:
            try:
                await self.provider.open_credential_selector()
            except Exception as e:
                logger.error(f"Error opening key selector: {e}")
                return self._state

            self._state = CredentialState.PRESENT
            self._force_prompt = False
            self._notify()
            return self._state

    def force_reprompt(self):
        """Show the prompt again even though the cached state says present."""
        self._force_prompt = True
        logger.info(f"Key prompt forced (cached state={self._state.value})")

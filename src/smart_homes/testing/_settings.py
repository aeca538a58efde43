"""Test factory for simulator Settings.

:func:`make_settings` builds :class:`~smart_homes._settings.Settings`
from model defaults plus explicit overrides only, so a developer's
``.env`` file or ``SMART_HOMES_*`` variables never leak into a test.
"""

from __future__ import annotations

from typing import Any

from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from smart_homes._settings import Settings


class _IsolatedSettings(Settings):
    """Settings whose only source is the constructor's keyword arguments."""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],  # noqa: ARG003
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings,)


def make_settings(**overrides: Any) -> Settings:
    """Create a ``Settings`` instance isolated from the environment.

    Example::

        settings = make_settings(fleet=FleetSettings(num_homes=2))
        assert settings.mqtt.broker_url == "tcp://localhost:1883"
    """
    return _IsolatedSettings(_env_file=None, **overrides)  # type: ignore[call-arg]

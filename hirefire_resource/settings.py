"""
Environment settings for the HireFire resource agent.

Loads the agent's runtime settings from environment variables with the
prefix HIREFIRE_.  The settings are read fresh every time a
``HireFireSettings`` instance is created, which the agent does at each
point of use (every dispatch, every intercepted request).  Rotating
``HIREFIRE_TOKEN`` or ``HIREFIRE_DISPATCH_URL`` therefore takes effect
without restarting the host process.
"""

import typing

import pydantic
import pydantic_settings

DEFAULT_DISPATCH_URL = "logdrain.hirefire.io"


class HireFireSettings(pydantic_settings.BaseSettings):
    """
    Runtime settings for the agent.

    Every field maps to an environment variable prefixed with HIREFIRE_.
    For example, the field ``dispatch_url`` is populated from
    HIREFIRE_DISPATCH_URL.
    """

    token: str | None = pydantic.Field(
        default=None,
        description=(
            "Shared secret identifying this application to HireFire. Found in "
            "the HireFire Web UI in the dyno manager settings. When unset, "
            "request queue time collection and the info endpoint are disabled."
        ),
    )

    dispatch_url: str = pydantic.Field(
        default=DEFAULT_DISPATCH_URL,
        description=(
            "Host that receives web metrics. A leading http:// or https:// is "
            "stripped; metrics are always sent over HTTPS on port 443. A blank "
            "value falls back to the default host."
        ),
    )

    verbose: bool = pydantic.Field(
        default=False,
        description=(
            "Log the contents of every web metrics buffer before it is dispatched. "
            "Any non-empty value turns it on."
        ),
    )

    log_level: str = pydantic.Field(
        default="INFO",
        description=(
            "Minimum log level used by ``configure_logging``. "
            "Accepted values: DEBUG, INFO, WARNING, ERROR, CRITICAL."
        ),
    )

    model_config = pydantic_settings.SettingsConfigDict(
        env_prefix="HIREFIRE_",
    )

    @pydantic.field_validator("token", mode="after")
    @classmethod
    def _treat_empty_token_as_unset(cls, value: str | None) -> str | None:
        return value or None

    @pydantic.field_validator("dispatch_url", mode="before")
    @classmethod
    def _default_blank_dispatch_url(cls, value: typing.Any) -> typing.Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_DISPATCH_URL
        return value

    @pydantic.field_validator("verbose", mode="before")
    @classmethod
    def _any_value_enables_verbose(cls, value: typing.Any) -> bool:
        if isinstance(value, str):
            return bool(value.strip())
        return bool(value)

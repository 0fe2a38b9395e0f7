"""Runtime configuration.

Settings are resolved from `LAZYBIND_*` environment variables and may
point to a YAML policy file listing targets that must always resolve
eagerly:

    enabled: true
    eager:
      - numpy
      - myapp.plugins

Problems with the policy file raise `PolicyError` in strict mode and
are reported as `PolicyWarning` otherwise.
"""

from pathlib import Path  # noqa: TC003
from typing import TYPE_CHECKING, Any
from warnings import warn

from pydantic import Field, ValidationError
from pydantic_settings import SettingsConfigDict
from yaml import safe_load
from yaml.error import MarkedYAMLError, YAMLError

from lazybind.errors import ErrorContext, PolicyError, PolicyWarning
from lazybind.models import SchemaModel, SettingsModel
from lazybind.names import Target  # noqa: TC001

if TYPE_CHECKING:
    from typing import TextIO


class PolicyDocument(SchemaModel):
    """Declarative eager policy loaded from a YAML file."""

    enabled: bool = Field(
        default=True,
        title='Deferral enabled',
        description=(
            'Whether declarations may be deferred at all. '
            'When disabled, every declaration resolves immediately.'
        ),
    )

    eager: list[Target] = Field(
        default_factory=list,
        title='Eager targets',
        description=(
            'Targets that always resolve at declaration time. '
            'A name also matches every target nested below it.'
        ),
    )


class LazySettings(SettingsModel):
    """Settings of the process-wide default policy."""

    model_config = SettingsConfigDict(
        env_prefix='LAZYBIND_',
    )

    enabled: bool = Field(
        default=True,
        description='Whether declarations may be deferred at all.',
    )

    eager: list[str] = Field(
        default_factory=list,
        description='Targets that always resolve at declaration time.',
    )

    strict: bool = Field(
        default=True,
        description='Whether policy file problems raise instead of warning.',
    )

    policy_file: Path | None = Field(
        default=None,
        description='Optional YAML policy file.',
    )

    def load_document(self) -> PolicyDocument | None:
        """Load the configured policy file, if any."""
        if self.policy_file is None:
            return None

        return load_policy_file(self.policy_file, strict=self.strict)


def parse_policy(content: 'str | TextIO', *,
                 filename: str | None = None) -> PolicyDocument:
    """Parse and validate a YAML policy document.

    Args:
        content: YAML text or stream.
        filename: Name of the source used in error messages.

    Returns:
        The validated policy document. An empty document yields defaults.

    Raises:
        PolicyError: If the YAML is malformed or fails validation.
    """
    try:
        data: Any = safe_load(content)
    except MarkedYAMLError as error:
        raise PolicyError.from_yaml_error(error) from error
    except YAMLError as error:
        raise PolicyError('Invalid YAML', context=ErrorContext(filename=filename)) from error

    if data is None:
        data = {}

    try:
        return PolicyDocument.model_validate(data)
    except ValidationError as error:
        raise PolicyError.from_pydantic_error(error, data=data, filename=filename) from error


def load_policy_file(path: Path, *, strict: bool = True) -> PolicyDocument | None:
    """Load a YAML policy file.

    Args:
        path: Path of the policy file.
        strict: Raise on problems instead of warning.

    Returns:
        The policy document, or `None` if it could not be loaded
        in relaxed mode.

    Raises:
        PolicyError: On any problem in strict mode.
    """
    try:
        with path.open('rt', encoding='utf-8') as content:
            return parse_policy(content, filename=path.as_posix())

    except OSError as base:
        error = PolicyError(
            f'Can not read policy file: {base.strerror or base}',
            context=ErrorContext(filename=path.as_posix()),
        )
        if strict:
            raise error from base
        warn(str(error), category=PolicyWarning, stacklevel=2)

    except PolicyError as error:
        if strict:
            raise
        warn(str(error), category=PolicyWarning, stacklevel=2)

    return None

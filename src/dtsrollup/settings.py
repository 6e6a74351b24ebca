from typing import Optional, Tuple, Type

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    TomlConfigSettingsSource,
)

from dtsrollup.models import NewlineKind, RollupKind


class RollupSettings(BaseSettings):
    """Settings for one declaration rollup run."""

    project_folder: str = Field(
        default=".",
        description="Folder that relative paths (entry point and outputs) are resolved against.",
    )
    entry_point: str = Field(
        description=(
            'The declaration file of the package entry point, e.g. "lib/index.d.ts". '
            "Every declaration reachable from its exports is rolled up."
        ),
    )
    untrimmed_file_path: Optional[str] = Field(
        default=None,
        description="Where to write the internal rollup (nothing is trimmed). Empty means skip.",
    )
    beta_trimmed_file_path: Optional[str] = Field(
        default=None,
        description=(
            "Where to write the preview rollup, which drops @alpha and @internal "
            "declarations. Empty means skip."
        ),
    )
    public_trimmed_file_path: Optional[str] = Field(
        default=None,
        description=(
            "Where to write the public rollup, which keeps only @public and untagged "
            "declarations. Empty means skip."
        ),
    )
    newline_kind: NewlineKind = Field(
        default=NewlineKind.LF,
        description='Line endings of the written files: "lf" or "crlf".',
    )
    omit_trimming_comments: bool = Field(
        default=False,
        description='If True, trimmed declarations leave no "Removed for this release type" comment.',
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # explicit values, then the environment, then config files
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            JsonConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    def get_output_paths(self) -> dict[RollupKind, str]:
        outputs = {
            RollupKind.INTERNAL_RELEASE: self.untrimmed_file_path,
            RollupKind.PREVIEW_RELEASE: self.beta_trimmed_file_path,
            RollupKind.PUBLIC_RELEASE: self.public_trimmed_file_path,
        }
        return {kind: path for kind, path in outputs.items() if path}

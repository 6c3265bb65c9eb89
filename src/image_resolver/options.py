from __future__ import annotations

from typing import Any

from attrs import asdict, define, evolve, field, fields
from typeguard import typechecked

from image_resolver.utils.yaml import custom_yaml_repr, yaml_load


@custom_yaml_repr
@typechecked
@define(kw_only=True)
class DockerOption:
    """Options influencing how a remote image is fetched

    `platform` is either empty (registry's default), `os/arch[/variant]`
    or `*/arch[/variant]` to use whatever OS the image is published for.
    Should several credentials be set, username/password wins over the
    registry token."""

    insecure_skip_tls_verify: bool = False
    non_ssl: bool = False
    platform: str = ""
    registry_token: str = field(default="", repr=False)
    username: str = ""
    password: str = field(default="", repr=False)

    @classmethod
    def read_from(cls, text: str) -> DockerOption:
        """Options from a YAML string config

        Keys are the attribute names, `-` being accepted in place of `_`"""
        payload = yaml_load(text) or {}
        if not isinstance(payload, dict):
            raise ValueError(f"Unexpected type for {cls.__name__}: {type(payload)}")
        return cls(**cls.normalize(payload))

    @classmethod
    def normalize(cls, payload: dict[str, Any]) -> dict[str, Any]:
        known = {attr.name for attr in fields(cls)}
        normalized = {
            str(key).replace("-", "_"): value for key, value in payload.items()
        }
        unknown = set(normalized) - known
        if unknown:
            raise ValueError(
                f"Unknown {cls.__name__} key(s): {','.join(sorted(unknown))}"
            )
        return normalized

    def updated_with(self, **overrides: Any) -> DockerOption:
        """copy with overrides applied, None values being ignored"""
        return evolve(
            self,
            **{key: value for key, value in overrides.items() if value is not None},
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @staticmethod
    def __yaml_repr__(dumper, data):
        # never serialize secrets
        payload = asdict(data)
        for key in ("registry_token", "password"):
            if payload[key]:
                payload[key] = "***"
        return dumper.represent_dict(payload)

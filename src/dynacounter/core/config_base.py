"""YAML-backed pydantic models for dynacounter configuration."""

from pathlib import Path
from typing import TypeVar

import typer
import yaml
from pydantic import BaseModel, ValidationError
from rich.console import Console

T = TypeVar("T", bound="ConfigModel")
console = Console(stderr=True)


class ConfigModel(BaseModel):
    """Base model that loads from and saves to YAML.

    Load failures are reported on stderr and end the command with
    ``typer.Exit(1)``; every model default is valid, so an empty file
    loads as defaults.
    """

    @classmethod
    def from_yaml(cls: type[T], path: Path) -> T:
        """Load and validate a YAML file.

        Raises:
            typer.Exit: File missing or unreadable, bad YAML, or invalid values
        """
        try:
            data = yaml.safe_load(path.read_text())
        except FileNotFoundError:
            console.print(f"[red]Configuration file not found:[/red] {path}")
            console.print("[dim]Create one with 'dcount config init'[/dim]")
            raise typer.Exit(1)
        except OSError as e:
            console.print(f"[red]Cannot read configuration file:[/red] {path} ({e})")
            raise typer.Exit(1)
        except yaml.YAMLError as e:
            cls._report_yaml_error(e, path)

        try:
            return cls(**(data or {}))
        except ValidationError as e:
            cls._report_validation_error(e, path)

    def to_yaml_string(self) -> str:
        return yaml.safe_dump(self.model_dump(mode="json"), default_flow_style=False, sort_keys=False)

    def to_yaml(self, path: Path) -> None:
        path.write_text(self.to_yaml_string())

    @classmethod
    def _report_validation_error(cls, error: ValidationError, path: Path):
        console.print(f"[red]Invalid settings in[/red] {path}")
        for err in error.errors():
            field_path = ".".join(str(loc) for loc in err["loc"]) or "(root)"
            console.print(f"  [yellow]{field_path}:[/yellow] {err['msg']}")
        console.print("\n[dim]Compare with 'dcount config show' for the expected layout[/dim]")
        raise typer.Exit(1)

    @classmethod
    def _report_yaml_error(cls, error: yaml.YAMLError, path: Path):
        console.print(f"[red]Invalid YAML in[/red] {path}")
        mark = getattr(error, "problem_mark", None)
        if mark is not None:
            console.print(f"  line {mark.line + 1}, column {mark.column + 1}")
        raise typer.Exit(1)

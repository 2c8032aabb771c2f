"""CLI interface for intent_master developer tooling."""

import json
from pathlib import Path

import typer

from .analysis import AnalysisSnapshot
from .decision import DEFAULT_DECISION, normalize_decision
from .derivation import derive_params
from .risk import detect_low_end_collision, evaluate_low_end_risk
from .safety import clamp_params
from .specifics import MasteringTarget, enum_values, resolve_specifics, resolve_target

app = typer.Typer(help="intent_master command line interface")


def _read_json(path: Path) -> dict:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, ValueError) as exc:
        raise typer.BadParameter(f"Cannot read JSON from {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise typer.BadParameter(f"{path} must contain a JSON object.")
    return data


@app.command("derive")
def derive_command(
    snapshot_path: Path = typer.Option(
        ..., "--snapshot", "-s", help="Path to analysis snapshot JSON"
    ),
    target: str = typer.Option(
        MasteringTarget.SPOTIFY.value,
        "--target",
        "-t",
        help=f"Distribution target: {', '.join(enum_values(MasteringTarget))}.",
    ),
    decision_path: Path | None = typer.Option(
        None,
        "--decision",
        "-d",
        help="Optional decision JSON; defaults are used for anything missing.",
    ),
) -> None:
    """Derive and safety clamp mastering parameters for a snapshot."""

    try:
        mastering_target = resolve_target(target)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--target") from exc

    snapshot = AnalysisSnapshot.from_mapping(_read_json(snapshot_path))
    decision = normalize_decision(_read_json(decision_path)) if decision_path else DEFAULT_DECISION
    specifics = resolve_specifics(mastering_target)
    raw = derive_params(decision, snapshot, specifics)
    params = clamp_params(raw, snapshot)

    report = {
        "target": mastering_target.value,
        "decision": decision.as_dict(),
        "risk": evaluate_low_end_risk(snapshot, raw.gain_db),
        "collision": detect_low_end_collision(snapshot),
        "params": params.as_dict(),
    }
    typer.echo(json.dumps(report, indent=2))


@app.command("targets")
def targets_command() -> None:
    """List distribution targets and their loudness policy."""

    for mastering_target in MasteringTarget:
        specifics = resolve_specifics(mastering_target)
        typer.echo(
            f"{mastering_target.value}: "
            f"loudness={specifics.target_loudness} LUFS "
            f"peak={specifics.target_peak} dBTP "
            f"({specifics.label})"
        )


def main() -> None:
    app()


if __name__ == "__main__":
    main()

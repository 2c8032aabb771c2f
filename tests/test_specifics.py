import pytest

from intent_master.specifics import (
    MasteringTarget,
    enum_values,
    parse_case_insensitive_enum,
    resolve_specifics,
    resolve_target,
)


def test_platform_policies_are_fixed() -> None:
    spotify = resolve_specifics(MasteringTarget.SPOTIFY)
    beatport = resolve_specifics(MasteringTarget.BEATPORT)

    assert (spotify.target_loudness, spotify.target_peak) == (-14.0, -1.0)
    assert (beatport.target_loudness, beatport.target_peak) == (-8.0, -0.3)
    assert "Beatport" in beatport.label
    assert spotify.context_text


def test_resolve_target_is_case_insensitive() -> None:
    assert resolve_target(" Beatport ") is MasteringTarget.BEATPORT
    assert resolve_target("SPOTIFY") is MasteringTarget.SPOTIFY


def test_parse_case_insensitive_enum_lists_allowed_values() -> None:
    with pytest.raises(ValueError, match="Allowed values: spotify, beatport"):
        parse_case_insensitive_enum("tidal", MasteringTarget)


def test_enum_values_keep_declaration_order() -> None:
    assert enum_values(MasteringTarget) == ("spotify", "beatport")

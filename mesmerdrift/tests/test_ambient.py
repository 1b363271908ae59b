"""Tests for ambient settings snapshot/restore."""

import dataclasses

import pytest

from mesmerdrift.session import (
    AMBIENT_FIELDS,
    AmbientSettings,
    RestoreWriteFailure,
    restore_snapshot,
    take_snapshot,
)


def test_snapshot_covers_every_field():
    snapshot = take_snapshot(AmbientSettings())
    assert len(snapshot) == len(AMBIENT_FIELDS)
    assert snapshot["master_volume"] == 100
    assert snapshot["flash_images"] == 2
    assert snapshot["flash_clickable"] is True
    assert snapshot["flash_audio_enabled"] is True
    assert snapshot["subliminal_frames"] == 2


def test_snapshot_is_read_only():
    snapshot = take_snapshot(AmbientSettings())
    with pytest.raises(TypeError):
        snapshot.values["flash_opacity"] = 1
    with pytest.raises(dataclasses.FrozenInstanceError):
        snapshot.values = {}


def test_restore_reproduces_configuration():
    settings = AmbientSettings(flash_enabled=True, flash_frequency=42, pink_filter_opacity=3, spiral_enabled=True)
    before = settings.as_dict()
    snapshot = take_snapshot(settings)

    settings.flash_enabled = False
    settings.flash_frequency = 1
    settings.pink_filter_opacity = 99
    settings.spiral_enabled = False
    settings.bubbles_enabled = True

    failures = restore_snapshot(settings, snapshot)
    assert failures == []
    assert settings.as_dict() == before


def test_snapshot_not_affected_by_later_changes():
    settings = AmbientSettings()
    snapshot = take_snapshot(settings)
    settings.flash_opacity = 11
    assert snapshot["flash_opacity"] == 100


class _FlakySettings(AmbientSettings):
    """Settings whose spiral opacity refuses writes once armed."""

    armed = False

    def __setattr__(self, name, value):
        if self.armed and name == "spiral_opacity":
            raise OSError("disk full")
        super().__setattr__(name, value)


def test_restore_continues_after_write_failure():
    settings = _FlakySettings()
    snapshot = take_snapshot(settings)
    settings.flash_opacity = 12
    settings.master_volume = 5
    object.__setattr__(settings, "armed", True)

    failures = restore_snapshot(settings, snapshot)

    assert len(failures) == 1
    failure = failures[0]
    assert isinstance(failure, RestoreWriteFailure)
    assert failure.field_name == "spiral_opacity"
    assert isinstance(failure.cause, OSError)
    # Fields after the failing one are still written back
    assert settings.flash_opacity == 100
    assert settings.master_volume == 100


def test_restore_covers_flash_and_subliminal_options():
    settings = AmbientSettings(flash_clickable=False, flash_audio_enabled=True, flash_images=7, subliminal_frames=4)
    snapshot = take_snapshot(settings)
    settings.flash_clickable = True
    settings.flash_audio_enabled = False
    settings.flash_images = 1
    settings.subliminal_frames = 9

    assert restore_snapshot(settings, snapshot) == []
    assert (settings.flash_clickable, settings.flash_audio_enabled) == (False, True)
    assert (settings.flash_images, settings.subliminal_frames) == (7, 4)

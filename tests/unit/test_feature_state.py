from __future__ import annotations

from convoq.ai.state import FeatureState


def test_set_loading_clears_stale_error():
    state = FeatureState[str]("summary")
    state.set_error("conv-1", "boom")

    state.set_loading("conv-1", True)

    assert state.is_loading("conv-1")
    assert state.error("conv-1") is None


def test_finishing_keeps_error():
    state = FeatureState[str]("summary")
    state.set_loading("conv-1", True)
    state.set_error("conv-1", "boom")
    state.set_loading("conv-1", False)

    assert not state.is_loading("conv-1")
    assert state.error("conv-1") == "boom"
    assert state.first_error() == "boom"


def test_values_are_per_key():
    state = FeatureState[int]("counts")
    state.set("a", 1)
    state.set("b", 2)

    assert state.value("a") == 1
    assert state.value("b") == 2
    assert state.value("c") is None

    state.clear("a")
    assert state.value("a") is None
    assert state.value("b") == 2


def test_any_loading_and_clear_all():
    state = FeatureState[str]("search")
    assert not state.any_loading()

    state.set_loading("q1", True)
    state.set_loading("q2", False)
    assert state.any_loading()

    state.clear_all()
    assert not state.any_loading()
    assert len(state) == 0
    assert state.first_error() is None

import numpy as np
import pytest

from ammosnap.core.layers import NoiseLayer
from ammosnap.core.network import NetworkArchitecture
from ammosnap.data.labels import DigitLabel, one_hot
from ammosnap.errors import DecodeAmbiguity, ShapeError
from ammosnap.inference.decode import SlotReading, decode, decode_readings, read_slots
from ammosnap.inference.trigger import AmmoTrigger, TriggerOutcome, TriggerState, update
from ammosnap.vision.digits import digit_inputs, extract_digit_images
from ammosnap.vision.image import GrayscaleImage

B = DigitLabel.BLANK


def _readings(*labels, confidence=0.9):
    return [SlotReading(DigitLabel(label), confidence) for label in labels]


@pytest.mark.parametrize(
    "labels, value",
    [((B, 3, 6), 36), ((3, 6, B), 36), ((1, 6, 3), 163), ((B, B, 0), 0), ((0, 7), 7)],
)
def test_decode_readings(labels, value):
    assert decode_readings(_readings(*labels)) == value


@pytest.mark.parametrize("labels", [(3, B, 6), (B, B, B)])
def test_decode_rejects_interior_or_all_blank(labels):
    with pytest.raises(DecodeAmbiguity):
        decode_readings(_readings(*labels))


def test_decode_rejects_low_confidence():
    readings = _readings(B, 3) + [SlotReading(DigitLabel.SIX, 0.4)]
    with pytest.raises(DecodeAmbiguity, match="confidence"):
        decode_readings(readings, min_confidence=0.5)
    assert decode_readings(readings, min_confidence=0.4) == 36


def _uniform_network(input_size):
    network = NetworkArchitecture(input_size=input_size, hidden_sizes=()).build()
    dense = network.dense_layers()[0]
    dense.load_parameters(np.zeros_like(dense.weights), np.zeros_like(dense.biases))
    return network


def test_ties_resolve_to_lowest_label(three_slot_layout, render):
    network = _uniform_network(three_slot_layout.input_size)
    crops = extract_digit_images(render(three_slot_layout, [1]), three_slot_layout)
    readings = read_slots(network, crops)
    assert [r.label for r in readings] == [DigitLabel.ZERO] * 3
    assert readings[0].confidence == pytest.approx(1.0 / 11)
    targets = np.stack([one_hot(DigitLabel.ZERO), one_hot(DigitLabel.THREE)])
    assert network.accuracy(digit_inputs(crops[:2]), targets) == 0.5
    assert decode(network, crops) == 0
    with pytest.raises(DecodeAmbiguity):
        decode(network, crops, min_confidence=0.5)


def test_read_slots_checks_crop_size():
    network = _uniform_network(10)
    with pytest.raises(ShapeError):
        read_slots(network, [GrayscaleImage.blank(4, 4)])
    with pytest.raises(ShapeError):
        read_slots(network, [])


def test_trigger_sequence():
    state = TriggerState()
    outcomes = [update(state, value) for value in [36, 36, 35, 35, None, 34]]
    assert outcomes == [
        TriggerOutcome.NO_CHANGE,
        TriggerOutcome.NO_CHANGE,
        TriggerOutcome.DECREASED,
        TriggerOutcome.NO_CHANGE,
        TriggerOutcome.NO_CHANGE,
        TriggerOutcome.DECREASED,
    ]
    assert state.last_decoded_count == 34


def test_unparseable_frames_leave_state_alone():
    state = TriggerState(last_decoded_count=12)
    assert update(state, None) is TriggerOutcome.NO_CHANGE
    assert state.last_decoded_count == 12
    assert update(TriggerState(), None) is TriggerOutcome.NO_CHANGE


def test_increase_adopts_new_baseline_without_triggering():
    state = TriggerState()
    outcomes = [update(state, value) for value in [3, 36, 35]]
    assert outcomes == [
        TriggerOutcome.NO_CHANGE,
        TriggerOutcome.INCREASED,
        TriggerOutcome.DECREASED,
    ]
    assert [o.triggers_capture for o in outcomes] == [False, False, True]


def test_reset_starts_a_new_baseline():
    state = TriggerState()
    update(state, 20)
    assert state.reset() is TriggerOutcome.RESET
    assert state.last_decoded_count is None
    assert update(state, 10) is TriggerOutcome.NO_CHANGE


def test_ammo_trigger_treats_ambiguity_as_no_change(three_slot_layout, render):
    network = _uniform_network(three_slot_layout.input_size)
    trigger = AmmoTrigger(
        network.with_leading_layers([NoiseLayer(0.5, 0.5)]),
        three_slot_layout,
        min_confidence=0.5,
    )
    assert not any(isinstance(layer, NoiseLayer) for layer in trigger.network.layers)
    frame = render(three_slot_layout, [4, 2])
    assert trigger.read(frame) is None
    assert trigger.observe(frame) is TriggerOutcome.NO_CHANGE
    assert trigger.state.last_decoded_count is None
    assert trigger.reset() is TriggerOutcome.RESET

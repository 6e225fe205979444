"""
Tests for Number Classifier
"""

import pytest
import numpy as np
import cv2
from hypothesis import given, strategies as st

from armor_detector.classification.number_classifier import (
    NumberClassifier, OnnxNumberModel, UNKNOWN_LABEL, ROI_SIZE, WARP_HEIGHT, load_labels
)
from armor_detector.data_models import Armor, ArmorType
from armor_detector.utils.config_manager import ConfigManager

from conftest import FixedNumberModel, SequenceNumberModel, blank_frame, draw_light, make_light


def make_armor(armor_type: ArmorType = ArmorType.SMALL) -> Armor:
    """Armor over the synthetic small-armor frame."""
    armor = Armor(make_light(300, 240), make_light(400, 240), type=armor_type)
    armor.number_image = np.zeros((ROI_SIZE[1], ROI_SIZE[0]), dtype=np.uint8)
    return armor


class StubNet:
    """Stand-in for an OpenCV DNN network returning fixed scores."""

    def __init__(self, scores: np.ndarray):
        self.scores = scores
        self.blob = None

    def setInput(self, blob):
        self.blob = blob

    def forward(self):
        return self.scores.reshape(1, -1)


def make_onnx_model(tmp_path, monkeypatch, net: StubNet, label_path=None) -> OnnxNumberModel:
    """OnnxNumberModel whose network loader returns the given stub."""
    model_path = tmp_path / "mlp.onnx"
    model_path.write_bytes(b"")
    monkeypatch.setattr(cv2.dnn, "readNetFromONNX", lambda path: net)
    return OnnxNumberModel(str(model_path), label_path)


class TestNumberClassifier:
    """Test suite for number classifier."""

    @pytest.fixture
    def classifier(self, config_manager):
        """Fixture providing a classifier with a confident fixed model."""
        return NumberClassifier(FixedNumberModel("3", 0.95), config_manager)

    def test_classifier_initialization(self, classifier):
        """Test that the classifier picks up the configured thresholds."""
        assert classifier.threshold == pytest.approx(0.7)
        assert "negative" in classifier.ignore_classes
        assert classifier.reject_size_mismatch

    def test_extract_numbers_small(self, classifier):
        """Test that a small armor crop is a binary 28x20 image."""
        frame = blank_frame()
        draw_light(frame, (300, 240))
        draw_light(frame, (400, 240))
        cv2.rectangle(frame, (340, 225), (360, 255), (255, 255, 255), -1)

        armor = Armor(make_light(300, 240), make_light(400, 240), type=ArmorType.SMALL)
        classifier.extract_numbers(frame, [armor])

        image = armor.number_image
        assert image.shape == (WARP_HEIGHT, ROI_SIZE[0])
        assert image.dtype == np.uint8
        assert set(np.unique(image)) <= {0, 255}
        # The bright digit block sits in the middle of the crop
        assert image[WARP_HEIGHT // 2, ROI_SIZE[0] // 2] == 255

    def test_extract_numbers_large(self, classifier, large_armor_frame):
        """Test that large armors produce the same crop size."""
        armor = Armor(make_light(200, 240), make_light(380, 240), type=ArmorType.LARGE)

        classifier.extract_numbers(large_armor_frame, [armor])

        assert armor.number_image.shape == (WARP_HEIGHT, ROI_SIZE[0])

    def test_confident_label(self, classifier):
        """Test that a confident prediction keeps its label."""
        armors = [make_armor()]

        result = classifier.classify(armors)

        assert result is armors
        assert len(armors) == 1
        assert armors[0].label == "3"
        assert armors[0].confidence == pytest.approx(0.95)
        assert armors[0].classification_result == "3: 95%"

    def test_low_confidence_marked_unknown(self, config_manager):
        """Test that a low-confidence armor is kept with label unknown."""
        classifier = NumberClassifier(FixedNumberModel("4", 0.4), config_manager)
        armors = [make_armor()]

        classifier.classify(armors)

        assert len(armors) == 1
        assert armors[0].label == UNKNOWN_LABEL
        assert armors[0].confidence == pytest.approx(0.4)

    def test_negative_removed(self, config_manager):
        """Test that armors classified as background are dropped."""
        model = SequenceNumberModel([("negative", 0.9), ("5", 0.9)])
        classifier = NumberClassifier(model, config_manager)
        armors = [make_armor(), make_armor()]

        classifier.classify(armors)

        assert [a.label for a in armors] == ["5"]

    def test_size_mismatch_removed(self, config_manager):
        """Test that digits impossible for the plate size are dropped."""
        model = SequenceNumberModel([("1", 0.9), ("1", 0.9), ("2", 0.9), ("2", 0.9)])
        classifier = NumberClassifier(model, config_manager)
        armors = [
            make_armor(ArmorType.SMALL), make_armor(ArmorType.LARGE),
            make_armor(ArmorType.SMALL), make_armor(ArmorType.LARGE),
        ]

        classifier.classify(armors)

        assert [(a.type, a.label) for a in armors] == [
            (ArmorType.LARGE, "1"), (ArmorType.SMALL, "2"),
        ]

    def test_size_mismatch_disabled(self, config_manager):
        """Test that the size check can be switched off per call."""
        classifier = NumberClassifier(FixedNumberModel("1", 0.9), config_manager)
        armors = [make_armor(ArmorType.SMALL)]

        classifier.classify(armors, reject_size_mismatch=False)

        assert len(armors) == 1

    def test_threshold_override(self, classifier):
        """Test that the per-call threshold replaces the configured one."""
        armors = [make_armor()]

        classifier.classify(armors, threshold=0.99)

        assert armors[0].label == UNKNOWN_LABEL

    def test_classify_requires_number_image(self, classifier):
        """Test that classification without extraction is an error."""
        armor = Armor(make_light(300, 240), make_light(400, 240))

        with pytest.raises(ValueError, match="extract_numbers"):
            classifier.classify([armor])

    def test_model_receives_normalized_image(self, config_manager):
        """Test that crops are scaled to [0, 1] before reaching the model."""
        seen = []

        class RecordingModel:
            def classify(self, normalized_image):
                seen.append(normalized_image)
                return "3", 0.9

        classifier = NumberClassifier(RecordingModel(), config_manager)
        armor = make_armor()
        armor.number_image[:, :10] = 255

        classifier.classify([armor])

        assert seen[0].dtype == np.float32
        assert seen[0].max() == pytest.approx(1.0)
        assert seen[0].min() == pytest.approx(0.0)

    def test_default_labels(self):
        """Test the packaged label set."""
        labels = load_labels()

        assert labels[:10] == [str(d) for d in range(10)]
        assert labels[-1] == "negative"

    def test_onnx_model_missing_file(self, tmp_path):
        """Test that a missing model file is reported clearly."""
        with pytest.raises(FileNotFoundError):
            OnnxNumberModel(str(tmp_path / "missing.onnx"))

    def test_onnx_model_softmax_and_label(self, tmp_path, monkeypatch):
        """Test that raw network scores become the top label and its softmax probability."""
        logits = np.zeros(11, dtype=np.float32)
        logits[3] = 5.0
        net = StubNet(logits)
        model = make_onnx_model(tmp_path, monkeypatch, net)

        label, confidence = model.classify(np.zeros((WARP_HEIGHT, ROI_SIZE[0]), dtype=np.float32))

        assert label == "3"
        assert confidence == pytest.approx(np.exp(5.0) / (np.exp(5.0) + 10))
        assert net.blob.shape == (1, 1, WARP_HEIGHT, ROI_SIZE[0])

    def test_onnx_model_custom_labels(self, tmp_path, monkeypatch):
        """Test that a label file maps output indices to its own labels."""
        label_path = tmp_path / "labels.txt"
        label_path.write_text("outpost\nguard\nbase\n")
        net = StubNet(np.array([0.1, 0.2, 3.0], dtype=np.float32))
        model = make_onnx_model(tmp_path, monkeypatch, net, str(label_path))

        label, confidence = model.classify(np.zeros((WARP_HEIGHT, ROI_SIZE[0]), dtype=np.float32))

        assert label == "base"
        assert 0.5 < confidence < 1.0

    def test_onnx_model_output_size_mismatch(self, tmp_path, monkeypatch):
        """Test that an output width different from the label count is an error."""
        model = make_onnx_model(tmp_path, monkeypatch, StubNet(np.zeros(5, dtype=np.float32)))

        with pytest.raises(ValueError, match="5 scores for 11 labels"):
            model.classify(np.zeros((WARP_HEIGHT, ROI_SIZE[0]), dtype=np.float32))

    def test_from_config_requires_model_path(self, config_manager):
        """Test that building from configuration needs a model path."""
        with pytest.raises(ValueError, match="model_path"):
            NumberClassifier.from_config(config_manager)

    @pytest.mark.property
    @given(
        outputs=st.lists(
            st.tuples(
                st.sampled_from([str(d) for d in range(10)]),
                st.floats(min_value=0.0, max_value=1.0),
            ),
            min_size=1,
            max_size=8,
        ),
        low=st.floats(min_value=0.0, max_value=1.0),
        high=st.floats(min_value=0.0, max_value=1.0),
    )
    def test_property_threshold_monotonic(self, outputs, low, high):
        """Property test: raising the threshold never adds confident digits."""
        low, high = min(low, high), max(low, high)
        config = ConfigManager()

        def confident_count(threshold):
            classifier = NumberClassifier(SequenceNumberModel(outputs), config)
            armors = [make_armor() for _ in outputs]
            classifier.classify(armors, threshold=threshold, reject_size_mismatch=False)
            return sum(1 for a in armors if a.label != UNKNOWN_LABEL)

        assert confident_count(high) <= confident_count(low)

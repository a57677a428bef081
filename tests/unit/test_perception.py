"""
Unit tests for the perception modules.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
import pytesseract
from mss.exception import ScreenShotError
from PIL import Image

from playpilot.config import CaptureConfig, OCRConfig, VisionConfig
from playpilot.errors import CaptureError, RecognitionError
from playpilot.geometry import BoundingBox
from playpilot.perception.classifier import ElementClassifier
from playpilot.perception.merge import group_overlapping, merge_overlapping
from playpilot.perception.models import (
    DetectedElement,
    DetectionResult,
    ElementType,
    PixelBuffer,
    TextSpan,
    UI_TEMPLATES,
)
from playpilot.perception.ocr import TextRecognizer
from playpilot.perception.preprocessing import ImagePreprocessor
from playpilot.perception.screenshot import ScreenCapture
from playpilot.perception.template import TemplateMatcher, window_similarity


def span(text, confidence=90.0, box=(10, 10, 40, 20)):
    return TextSpan(text=text, confidence=confidence, bbox=BoundingBox(*box))


def element(box, confidence=1.0, element_type=ElementType.VIDEO_AREA):
    return DetectedElement(type=element_type, bbox=BoundingBox(*box), confidence=confidence)


def noise_buffer(width, height, seed=7):
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    pixels[:, :, 3] = 255
    return PixelBuffer(pixels)


class TestPixelBuffer:
    """Tests for PixelBuffer."""

    def test_is_read_only(self, make_buffer):
        buffer = make_buffer(4, 3)
        assert buffer.size == (4, 3)
        with pytest.raises(ValueError):
            buffer.pixels[0, 0, 0] = 1

    def test_leaves_caller_array_writeable(self):
        arr = np.zeros((3, 4, 4), dtype=np.uint8)

        buffer = PixelBuffer(arr)
        arr[0, 0, 0] = 255

        assert arr.flags.writeable
        assert buffer.pixels is not arr
        assert buffer.pixel(0, 0) == (0, 0, 0, 0)

    def test_rejects_bad_shape(self):
        with pytest.raises(ValueError):
            PixelBuffer(np.zeros((4, 4, 3), dtype=np.uint8))
        with pytest.raises(ValueError):
            PixelBuffer(np.zeros((0, 4, 4), dtype=np.uint8))

    def test_crop_returns_new_buffer(self):
        buffer = noise_buffer(20, 10)
        cropped = buffer.crop(BoundingBox(5, 2, 4, 3))

        assert cropped.size == (4, 3)
        assert cropped.pixel(0, 0) == buffer.pixel(5, 2)
        with pytest.raises(ValueError):
            buffer.crop(BoundingBox(18, 0, 4, 4))

    def test_from_bgra_swaps_channels(self):
        raw = bytes([1, 2, 3, 255] * 6)
        buffer = PixelBuffer.from_bgra(raw, 3, 2)
        assert buffer.pixel(2, 1) == (3, 2, 1, 255)

    def test_from_array_rgb(self):
        rgb = np.zeros((2, 2, 3), dtype=np.uint8)
        rgb[:, :] = (10, 20, 30)
        assert PixelBuffer.from_array(rgb).pixel(1, 1) == (10, 20, 30, 255)

    def test_load_png_keeps_rgb_order(self, tmp_path):
        path = tmp_path / "red.png"
        Image.new("RGB", (6, 4), (200, 10, 20)).save(path)

        buffer = PixelBuffer.load(path)
        assert buffer.size == (6, 4)
        assert buffer.pixel(0, 0) == (200, 10, 20, 255)

    def test_load_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            PixelBuffer.load(tmp_path / "missing.png")


class TestModels:
    """Tests for detection data models."""

    def test_registry_has_known_types(self):
        assert set(UI_TEMPLATES) == set(ElementType)
        assert UI_TEMPLATES[ElementType.PLAY_BUTTON].is_button
        assert not UI_TEMPLATES[ElementType.VIDEO_AREA].is_button
        assert "播放" in UI_TEMPLATES[ElementType.PLAY_BUTTON].keywords

    def test_element_to_dict(self):
        merged = DetectedElement(
            type=ElementType.VIDEO_AREA,
            bbox=BoundingBox(0, 0, 90, 90),
            confidence=0.8,
            merged_from=2,
        )
        d = merged.to_dict()
        assert d["type"] == "videoArea"
        assert d["center"] == {"x": 45, "y": 45}
        assert d["mergedFrom"] == 2

    def test_result_find_sorted_by_confidence(self):
        low = element((0, 0, 10, 10), 0.4, ElementType.PLAY_BUTTON)
        high = element((50, 50, 10, 10), 0.9, ElementType.PLAY_BUTTON)
        result = DetectionResult(timestamp=1.0, buttons=(low, high))

        assert result.find(ElementType.PLAY_BUTTON) == (high, low)
        assert result.find(ElementType.NEXT_BUTTON) == ()
        assert result.element_count == 2
        assert result.to_dict()["textRegions"] == []


class TestElementClassifier:
    """Tests for keyword buttons and dark-region scanning."""

    def test_keyword_match_is_case_insensitive(self):
        classifier = ElementClassifier(VisionConfig())
        buttons = classifier.classify_buttons([span("PLAY", 88.0)])

        assert len(buttons) == 1
        assert buttons[0].type == ElementType.PLAY_BUTTON
        assert buttons[0].confidence == 88.0
        assert buttons[0].bbox == BoundingBox(10, 10, 40, 20)
        assert buttons[0].text == "PLAY"

    def test_chinese_keywords(self):
        classifier = ElementClassifier()
        buttons = classifier.classify_buttons([span("下一集"), span("暂停")])
        assert [b.type for b in buttons] == [ElementType.NEXT_BUTTON, ElementType.PAUSE_BUTTON]

    def test_span_matching_several_buttons(self):
        classifier = ElementClassifier()
        buttons = classifier.classify_buttons([span("play next")])
        assert {b.type for b in buttons} == {ElementType.PLAY_BUTTON, ElementType.NEXT_BUTTON}

    def test_non_button_descriptors_ignored(self):
        classifier = ElementClassifier()
        assert classifier.classify_buttons([span("video progress"), span("hello")]) == []

    def test_dark_block_emits_footprint(self, make_buffer):
        pixels = make_buffer(500, 400).pixels.copy()
        pixels[100:200, 100:200, :3] = 0
        classifier = ElementClassifier(VisionConfig())

        candidates = classifier.scan_video_areas(PixelBuffer(pixels))

        assert [c.bbox.to_tuple()[:2] for c in candidates] == [
            (100, 100), (150, 100), (100, 150), (150, 150),
        ]
        assert all(c.bbox.width == 200 and c.bbox.height == 150 for c in candidates)
        assert all(c.confidence == 1.0 for c in candidates)

    def test_half_dark_block_below_ratio(self, make_buffer):
        pixels = make_buffer(200, 200).pixels.copy()
        pixels[0:50, 0:25, :3] = 0
        classifier = ElementClassifier()

        assert classifier.dark_fraction(PixelBuffer(pixels), 0, 0) == pytest.approx(0.5)
        assert classifier.scan_video_areas(PixelBuffer(pixels)) == []

    def test_bright_image_has_no_video(self, make_buffer):
        assert ElementClassifier().scan_video_areas(make_buffer(300, 300)) == []


class TestRegionMerge:
    """Tests for overlapping region merging."""

    def test_overlapping_pair_merges(self):
        a = element((0, 0, 50, 50), 0.8)
        b = element((40, 40, 50, 50), 0.6)
        c = element((200, 200, 10, 10), 0.9)

        merged = merge_overlapping([a, b, c])

        assert len(merged) == 2
        assert merged[0].bbox.to_tuple() == (0, 0, 90, 90)
        assert merged[0].confidence == pytest.approx(0.7)
        assert merged[0].merged_from == 2
        assert merged[1] is c

    def test_chain_is_absorbed(self):
        a = element((0, 0, 10, 10))
        b = element((8, 0, 10, 10))
        c = element((16, 0, 10, 10))

        groups = group_overlapping([a, b, c])
        assert groups == [[a, b, c]]

    def test_type_of_first_member_wins(self):
        a = element((0, 0, 10, 10), element_type=ElementType.PLAY_BUTTON)
        b = element((5, 5, 10, 10), element_type=ElementType.PAUSE_BUTTON)
        assert merge_overlapping([a, b])[0].type == ElementType.PLAY_BUTTON

    def test_single_pass_leaves_late_bridge(self):
        # c is checked against a's group before b joins it
        a = element((0, 0, 10, 10))
        c = element((30, 0, 10, 10))
        b = element((9, 0, 22, 10))

        merged = merge_overlapping([a, c, b])
        assert len(merged) == 2

    def test_empty(self):
        assert merge_overlapping([]) == []

    def test_full_dark_screen_merges_to_one(self, make_buffer):
        classifier = ElementClassifier()
        candidates = classifier.scan_video_areas(make_buffer(500, 400, (0, 0, 0)))

        merged = merge_overlapping(candidates)

        assert len(candidates) == 9 * 7
        assert len(merged) == 1
        assert merged[0].merged_from == 63
        assert merged[0].bbox.to_tuple() == (0, 0, 600, 450)


class TestTemplateMatcher:
    """Tests for sliding-window template matching."""

    def test_identical_region_scores_one(self):
        image = noise_buffer(120, 100)
        template = image.crop(BoundingBox(30, 40, 20, 20))
        matcher = TemplateMatcher(VisionConfig())

        result = matcher.match(image, template)

        assert result.confidence == pytest.approx(1.0)
        assert result.bbox == BoundingBox(30, 40, 20, 20)
        assert result.center == (40, 50)

    def test_inverted_region_scores_zero(self, make_buffer):
        white = make_buffer(20, 20, (255, 255, 255))
        black = make_buffer(20, 20, (0, 0, 0))
        assert window_similarity(white.rgb, black.rgb, 0, 0) == pytest.approx(0.0)

    def test_alpha_ignored(self, make_buffer):
        image = make_buffer(20, 20, (9, 9, 9))
        pixels = image.pixels.copy()
        pixels[:, :, 3] = 0
        assert window_similarity(image.rgb, PixelBuffer(pixels).rgb, 0, 0) == 1.0

    def test_template_larger_than_image(self, make_buffer):
        matcher = TemplateMatcher()
        result = matcher.match(make_buffer(10, 10), make_buffer(20, 20))

        assert result.confidence == 0.0
        assert result.bbox.to_tuple() == (0, 0, 20, 20)

    def test_find_applies_threshold(self, make_buffer):
        matcher = TemplateMatcher()
        image = make_buffer(60, 60, (255, 255, 255))
        dark = make_buffer(10, 10, (0, 0, 0))

        assert matcher.find(image, dark) is None
        assert matcher.find(image, dark, threshold=-1.0) is not None

    def test_find_by_name(self):
        image = noise_buffer(80, 80)
        matcher = TemplateMatcher()
        matcher.add_template("logo", image.crop(BoundingBox(20, 10, 16, 16)))

        result = matcher.find(image, "logo")

        assert result is not None
        assert result.template_name == "logo"
        assert result.bbox.to_tuple() == (20, 10, 16, 16)
        assert matcher.get_template_names() == ["logo"]

    def test_find_unknown_name(self, make_buffer):
        with pytest.raises(KeyError):
            TemplateMatcher().find(make_buffer(10, 10), "missing")

    def test_load_directory(self, tmp_path):
        Image.new("RGB", (8, 8), (1, 2, 3)).save(tmp_path / "next.png")
        (tmp_path / "broken.png").write_bytes(b"not a png")

        matcher = TemplateMatcher(VisionConfig(template_dir=str(tmp_path)))

        assert matcher.get_template_names() == ["next"]
        assert matcher.get_template("next").pixel(0, 0) == (1, 2, 3, 255)


class TestImagePreprocessor:
    """Tests for OCR preprocessing."""

    def test_grayscale(self, make_buffer):
        prepared = ImagePreprocessor().prepare(make_buffer(10, 6))
        assert prepared.image.shape == (6, 10)
        assert prepared.scale == 1.0

    def test_upscale_maps_back(self, make_buffer):
        prepared = ImagePreprocessor(grayscale=False, upscale_factor=2.0).prepare(make_buffer(10, 6))
        assert prepared.image.shape == (12, 20, 3)
        assert prepared.to_screen(40) == 20


def ocr_data(*words):
    """Build an image_to_data dict from (text, conf, left, top, width, height) rows."""
    keys = ("text", "conf", "left", "top", "width", "height")
    return {key: [w[i] for w in words] for i, key in enumerate(keys)}


@pytest.fixture
def tesseract():
    with patch.object(pytesseract, "get_tesseract_version", return_value="5.3.0") as version, \
            patch.object(pytesseract, "get_languages", return_value=["eng", "osd"]) as languages, \
            patch.object(pytesseract, "image_to_data") as image_to_data:
        yield SimpleNamespace(version=version, languages=languages, image_to_data=image_to_data)


class TestTextRecognizer:
    """Tests for the Tesseract wrapper."""

    def test_recognize_words(self, tesseract, make_buffer):
        tesseract.image_to_data.return_value = ocr_data(
            ("", -1, 0, 0, 100, 100),
            ("Play", 91.5, 10, 20, 30, 12),
            ("  ", 95, 0, 0, 5, 5),
            ("Next", 40, 50, 20, 30, 12),
        )
        recognizer = TextRecognizer(OCRConfig())

        spans = recognizer.recognize(make_buffer(100, 50))

        assert [s.text for s in spans] == ["Play", "Next"]
        assert spans[0].confidence == 91.5
        assert spans[0].bbox == BoundingBox(10, 20, 30, 12)

    def test_loads_only_installed_languages(self, tesseract, make_buffer):
        tesseract.image_to_data.return_value = ocr_data()
        recognizer = TextRecognizer(OCRConfig(language="chi_sim+eng"))

        assert recognizer.recognize(make_buffer(10, 10)) == []
        assert recognizer.engine.languages == "eng"
        assert tesseract.image_to_data.call_args.kwargs["lang"] == "eng"

    def test_engine_started_once(self, tesseract, make_buffer):
        tesseract.image_to_data.return_value = ocr_data()
        recognizer = TextRecognizer()
        assert not recognizer.started

        recognizer.recognize(make_buffer(10, 10))
        recognizer.recognize(make_buffer(10, 10))

        assert recognizer.started
        assert tesseract.version.call_count == 1

    def test_no_installed_language(self, tesseract, make_buffer):
        tesseract.languages.return_value = ["osd"]
        with pytest.raises(RecognitionError):
            TextRecognizer().recognize(make_buffer(10, 10))

    def test_engine_failure(self, tesseract, make_buffer):
        tesseract.image_to_data.side_effect = pytesseract.TesseractError(1, "crashed")
        with pytest.raises(RecognitionError):
            TextRecognizer().recognize(make_buffer(10, 10))

    def test_upscaled_boxes_map_back(self, tesseract, make_buffer):
        tesseract.image_to_data.return_value = ocr_data(("Play", 90, 20, 40, 60, 20))
        recognizer = TextRecognizer(OCRConfig(upscale_factor=2.0))

        spans = recognizer.recognize(make_buffer(100, 100))

        assert spans[0].bbox == BoundingBox(10, 20, 30, 10)

    def test_shutdown(self, tesseract, make_buffer):
        tesseract.image_to_data.return_value = ocr_data()
        recognizer = TextRecognizer()
        recognizer.recognize(make_buffer(10, 10))

        recognizer.shutdown()
        recognizer.shutdown()

        assert not recognizer.started
        with pytest.raises(RecognitionError):
            recognizer.recognize(make_buffer(10, 10))


def fake_mss(monitor, shot=None, error=None):
    sct = MagicMock()
    sct.monitors = [monitor, monitor]
    if error:
        sct.grab.side_effect = error
    else:
        sct.grab.return_value = shot
    factory = MagicMock()
    factory.return_value.__enter__.return_value = sct
    return factory, sct


def fake_shot(width, height):
    return SimpleNamespace(
        bgra=bytes([1, 2, 3, 255] * (width * height)),
        rgb=bytes([3, 2, 1] * (width * height)),
        width=width,
        height=height,
        size=(width, height),
    )


class TestScreenCapture:
    """Tests for mss-backed capture."""

    MONITOR = {"left": 100, "top": 50, "width": 1920, "height": 1080}

    def test_full_screen(self):
        factory, sct = fake_mss(self.MONITOR, fake_shot(4, 2))
        with patch("playpilot.perception.screenshot.mss.mss", factory):
            buffer = ScreenCapture(CaptureConfig()).capture()

        sct.grab.assert_called_once_with(self.MONITOR)
        assert buffer.size == (4, 2)
        assert buffer.pixel(0, 0) == (3, 2, 1, 255)

    def test_region_offset_by_monitor(self):
        factory, sct = fake_mss(self.MONITOR, fake_shot(10, 20))
        with patch("playpilot.perception.screenshot.mss.mss", factory):
            ScreenCapture().capture(BoundingBox(5, 6, 10, 20))

        sct.grab.assert_called_once_with({"left": 105, "top": 56, "width": 10, "height": 20})

    def test_failure_raises_capture_error(self):
        factory, _ = fake_mss(self.MONITOR, error=ScreenShotError("no display"))
        with patch("playpilot.perception.screenshot.mss.mss", factory):
            with pytest.raises(CaptureError):
                ScreenCapture().capture()

    def test_geometry(self):
        factory, _ = fake_mss(self.MONITOR)
        with patch("playpilot.perception.screenshot.mss.mss", factory):
            geometry = ScreenCapture().geometry()
        assert geometry.to_tuple() == (1920, 1080)

    def test_saves_screenshot(self, tmp_path):
        factory, _ = fake_mss(self.MONITOR, fake_shot(4, 2))
        config = CaptureConfig(save_screenshots=True, screenshot_dir=str(tmp_path))

        with patch("playpilot.perception.screenshot.mss.mss", factory), \
                patch("playpilot.perception.screenshot.mss.tools.to_png") as to_png:
            capture = ScreenCapture(config)
            capture.capture()

        to_png.assert_called_once()
        assert capture.last_saved_path.parent == tmp_path
        assert capture.last_saved_path.parent == config.screenshot_path
        assert capture.last_saved_path.suffix == ".png"

    def test_save_failure_does_not_fail_capture(self, tmp_path):
        factory, _ = fake_mss(self.MONITOR, fake_shot(4, 2))
        config = CaptureConfig(save_screenshots=True, screenshot_dir=str(tmp_path))

        with patch("playpilot.perception.screenshot.mss.mss", factory), \
                patch("playpilot.perception.screenshot.mss.tools.to_png", side_effect=OSError("disk full")):
            capture = ScreenCapture(config)
            buffer = capture.capture()

        assert buffer.size == (4, 2)
        assert capture.last_saved_path is None

"""Tests for scene intent classification."""

from __future__ import annotations

import pytest

from character_library.constants import EmotionalTone, SceneCategory
from character_library.errors import ClassificationError
from character_library.scene_intent import classify, tokenize


class TestTokenize:
    """Tests for tokenize."""

    def test_drops_short_words_stopwords_and_duplicates(self) -> None:
        assert tokenize("The quiet, QUIET room! on it") == ["quiet", "room"]

    def test_punctuation_only_yields_no_tokens(self) -> None:
        assert tokenize("!!! ?? a") == []


class TestClassify:
    """Tests for classify."""

    def test_quiet_intimate_conversation_prefers_tele_close_up(self) -> None:
        intent = classify("quiet intimate conversation, close on her face")

        assert intent.scene_category == SceneCategory.DIALOGUE
        assert intent.emotional_tone == EmotionalTone.INTIMATE
        assert intent.preferred_focal_lengths == (85,)
        assert intent.preferred_crops == ("cu",)
        assert intent.preferred_angle_buckets == (0.0, -15.0, 15.0)
        assert intent.composition.requires_eye_contact is True
        assert intent.confidence == 80

    def test_emotional_close_request(self) -> None:
        intent = classify("emotional, close")

        assert intent.scene_category == SceneCategory.EMOTIONAL
        assert intent.emotional_tone == EmotionalTone.INTIMATE
        assert intent.preferred_focal_lengths == (85,)
        assert intent.preferred_crops == ("cu",)
        assert intent.composition.requires_eye_contact is False

    def test_is_deterministic(self) -> None:
        text = "A tense argument in the kitchen, she stares at him"
        assert classify(text) == classify(text)

    @pytest.mark.parametrize("text", ["", "   \n\t"])
    def test_blank_prompt_raises(self, text: str) -> None:
        with pytest.raises(ClassificationError):
            classify(text)

    def test_non_string_prompt_raises(self) -> None:
        with pytest.raises(ClassificationError, match="must be a string"):
            classify(None)  # type: ignore[arg-type]

    def test_prompt_without_tokens_falls_back_to_neutral_dialogue(self) -> None:
        intent = classify("!!! ?? a")

        assert intent.scene_category == SceneCategory.DIALOGUE
        assert intent.emotional_tone == EmotionalTone.NEUTRAL
        assert intent.preferred_focal_lengths == (50, 85)
        assert intent.preferred_crops == ("cu", "mcu")
        assert intent.confidence == 50
        assert intent.keywords == ()

    def test_category_tie_falls_back_to_dialogue(self) -> None:
        intent = classify("fight tears")
        assert intent.scene_category == SceneCategory.DIALOGUE

    def test_hand_keywords_set_flag_without_adding_crop(self) -> None:
        intent = classify("she is holding a cup in her hands")

        assert intent.composition.requires_hands_detail is True
        assert "hands" not in intent.preferred_crops

    def test_profile_keywords_add_side_angles(self) -> None:
        intent = classify("contemplative profile by the window")

        assert intent.emotional_tone == EmotionalTone.CONTEMPLATIVE
        assert intent.preferred_angle_buckets == (0.0, -35.0, 35.0, -90.0, 90.0)
        assert intent.composition.requires_profile is True

    def test_dramatic_tone_widens_action_angles(self) -> None:
        intent = classify("dramatic fight in the rain")

        assert intent.scene_category == SceneCategory.ACTION
        assert intent.emotional_tone == EmotionalTone.DRAMATIC
        assert intent.preferred_angle_buckets == (-45.0, 0.0, 45.0, -15.0, 15.0)
        assert intent.composition.requires_full_body is True

    def test_camera_levels_are_clamped(self) -> None:
        intent = classify("quick fast chase, dramatic intense")

        assert intent.camera.dynamism_level == 10
        assert intent.camera.emotional_intensity == 7

    def test_confidence_is_capped(self) -> None:
        text = (
            "emotional crying tears, sad feeling, close face eyes expression, "
            "intimate quiet gentle whisper, looking direct"
        )
        assert classify(text).confidence == 95

    def test_reasoning_names_category_and_tone(self) -> None:
        reasoning = classify("dramatic fight in the rain").reasoning
        assert "Detected scene type: action" in reasoning
        assert "Emotional tone: dramatic" in reasoning

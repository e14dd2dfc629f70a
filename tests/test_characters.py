"""
Tests for character extraction and roster editing.
"""

import pytest
from pydantic import ValidationError

from animato.characters import (
    MAX_CHARACTERS,
    PERSONALITY_TRAITS,
    add_photos,
    detect_attributes,
    extract_characters,
    find_character_names,
    new_character,
    remove_character,
    remove_photo,
    select_photo,
    stable_seed,
    update_character,
)
from animato.models import Character, CharacterPhoto


def _photo(name: str, accepted: bool) -> CharacterPhoto:
    return CharacterPhoto(url=f"https://media.test/{name}.png", provider=name, is_accepted=accepted)


class TestNameDetection:
    """Tests for finding names in story text."""

    def test_cue_and_contextual_names(self):
        characters = extract_characters("**ARIA** said: Hello there. John walked into the room.")
        assert [c.name for c in characters] == ["ARIA", "John"]
        assert characters[0].role == "protagonist"
        assert characters[1].role == "supporting"

    def test_stopwords_are_trimmed_from_candidates(self):
        names = find_character_names("Then Marcus said nothing. The Captain replied.")
        assert names == ["Marcus", "Captain"]

    def test_names_are_deduplicated_case_insensitively(self):
        names = find_character_names("**MARIA**: Hi.\nMaria said hello.")
        assert names == ["MARIA"]

    def test_accented_names(self):
        assert find_character_names("José said hello. Zoë replied.") == ["José", "Zoë"]
        assert find_character_names("**ZOË**: Wait.\nÉlodie was late.") == ["ZOË", "Élodie"]

    def test_structural_cue_is_not_a_character(self):
        assert find_character_names("**CHAPTER ONE**\nIt began.") == []
        assert find_character_names("**SCENE 2**\n**ARIA**: Go.") == ["ARIA"]

    def test_roster_is_capped(self):
        people = ["Alice", "Bruno", "Clara", "David", "Elena", "Felix", "Grace", "Henry", "Irene", "Jonas"]
        text = "\n".join(f"{p} said hello." for p in people)
        characters = extract_characters(text)
        assert len(characters) == MAX_CHARACTERS
        assert [c.name for c in characters] == people[:MAX_CHARACTERS]


class TestPlaceholders:
    """Tests for padding thin rosters."""

    def test_empty_text(self):
        assert [c.name for c in extract_characters("")] == ["Protagonist", "Supporting Character"]

    def test_no_names_found(self):
        assert [c.name for c in extract_characters("It was a quiet day.")] == ["Protagonist", "Supporting Character"]

    def test_single_name_follows_protagonist_placeholder(self):
        characters = extract_characters("Maria was tired.")
        assert [c.name for c in characters] == ["Protagonist", "Maria"]
        assert [c.role for c in characters] == ["protagonist", "supporting"]

    def test_single_placeholder_name_is_not_duplicated(self):
        assert [c.name for c in extract_characters("Protagonist was tired.")] == ["Protagonist", "Supporting Character"]


class TestSynthesis:
    """Tests for deterministic trait and appearance synthesis."""

    def test_extraction_is_deterministic(self, sample_story):
        first = [c.model_dump() for c in extract_characters(sample_story)]
        second = [c.model_dump() for c in extract_characters(sample_story)]
        assert first == second

    def test_seed_ignores_name_case(self):
        assert stable_seed("Aria") == stable_seed("ARIA")
        assert stable_seed("Aria") != stable_seed("Aria", {"gender": "male"})

    def test_four_distinct_traits(self, sample_characters):
        for character in sample_characters:
            assert len(character.personality) == 4
            assert len(set(character.personality)) == 4
            assert set(character.personality) <= set(PERSONALITY_TRAITS)

    def test_stated_attributes_win(self):
        text = "Maria, a 30-year-old woman with red hair and green eyes, said hello."
        maria = extract_characters(text)[0]
        assert maria.appearance.age == 30
        assert maria.appearance.gender == "female"
        assert maria.appearance.hair_color == "red"
        assert maria.appearance.eye_color == "green"

    def test_attributes_ignore_shared_sentences(self):
        found = detect_attributes("Maria and Tom had red hair.", "Maria", ["Tom"])
        assert found == {}

    def test_mixed_pronouns_leave_gender_unset(self):
        found = detect_attributes("Sam saw her and him.", "Sam")
        assert "gender" not in found

    def test_overrides_take_precedence(self):
        maria = extract_characters("Maria said hi.", {"MARIA": {"gender": "male"}})[0]
        assert maria.appearance.gender == "male"

    def test_dialogue_samples(self):
        text = "**ARIA**: We must go.\nAria looked back.\n**JOHN**: Wait!"
        aria = extract_characters(text)[0]
        assert aria.dialogue_lines == ["We must go.", "Aria looked back."]


class TestRosterEditing:
    """Tests for adding, updating and removing characters."""

    def test_new_character_fills_unspecified_fields(self):
        character = new_character("Kai", appearance={"age": 50})
        assert character.appearance.age == 50
        assert len(character.personality) == 4
        assert character.description.startswith("Kai")

    def test_update_merges_appearance(self):
        character = new_character("Kai", appearance={"age": 50})
        updated = update_character(character, appearance={"hair_color": "red"})
        assert updated.appearance.hair_color == "red"
        assert updated.appearance.age == 50

    def test_remove_character(self, sample_characters):
        remaining = remove_character(sample_characters, sample_characters[0].id)
        assert len(remaining) == len(sample_characters) - 1
        with pytest.raises(KeyError):
            remove_character(sample_characters, "char-missing")


class TestPhotoSelection:
    """Tests for the single-selected-photo rule."""

    def test_accepted_photo_replaces_rejected_selection(self):
        character = new_character("Kai")
        character = add_photos(character, [_photo("a", False), _photo("b", True), _photo("c", True)])
        assert [p.is_selected for p in character.photos] == [False, True, False]
        assert character.selected_photo.provider == "b"

    def test_first_photo_is_selected(self):
        character = add_photos(new_character("Kai"), [_photo("a", False)])
        assert character.selected_photo.provider == "a"

    def test_select_photo(self):
        character = add_photos(new_character("Kai"), [_photo("a", True), _photo("b", True)])
        target = character.photos[1]
        character = select_photo(character, target.id)
        assert character.selected_photo.id == target.id
        assert sum(p.is_selected for p in character.photos) == 1
        with pytest.raises(KeyError):
            select_photo(character, "missing")

    def test_removing_selected_photo_reselects(self):
        character = add_photos(new_character("Kai"), [_photo("a", False), _photo("b", True), _photo("c", False)])
        character = remove_photo(character, character.selected_photo.id)
        assert [p.provider for p in character.photos] == ["a", "c"]
        assert sum(p.is_selected for p in character.photos) == 1

    def test_two_selected_photos_are_invalid(self):
        photos = [_photo("a", True).model_copy(update={"is_selected": True}),
                  _photo("b", True).model_copy(update={"is_selected": True})]
        with pytest.raises(ValidationError):
            Character(id="char-0", name="Kai", photos=photos)

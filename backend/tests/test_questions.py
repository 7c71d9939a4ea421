import pytest
from pydantic import ValidationError

from flightdeck.core.errors import GradingInputError
from flightdeck.schemas.question import (
    BoolAnswer,
    ChoiceSetAnswer,
    MatchingAnswer,
    MatchingPair,
    Question,
    QuestionKind,
    coerce_answer,
)


def _single():
    return Question(id="q1", kind=QuestionKind.single_choice, options=["A", "B", "C"], correct_option_index=1)


def _multiple():
    return Question(id="q2", kind=QuestionKind.multiple_choice, options=["X", "Y", "Z"], correct_option_indices=[0, 2])


def _matching():
    return Question(
        id="q3",
        kind=QuestionKind.matching,
        options=["Cloud", "Wind"],
        right_items=["Cumulus", "Thermal"],
        correct_pairs=[MatchingPair(left="Cloud", right="Cumulus"), MatchingPair(left="Wind", right="Thermal")],
    )


def test_single_choice():
    q = _single()
    assert q.is_answer_correct("B") is True
    assert q.is_answer_correct("C") is False
    assert q.is_answer_correct(None) is False


def test_single_choice_index_is_not_an_option():
    assert _single().is_answer_correct(1) is False


def test_multiple_choice_is_a_set_comparison():
    q = _multiple()
    assert q.is_answer_correct(["X", "Z"]) is True
    assert q.is_answer_correct(["Z", "X"]) is True
    assert q.is_answer_correct(["X"]) is False
    assert q.is_answer_correct(["X", "Y", "Z"]) is False


def test_true_false():
    q = Question(id="q", kind=QuestionKind.true_false, correct_bool_answer=False)
    assert q.is_answer_correct(False) is True
    assert q.is_answer_correct(True) is False
    # 0 and "false" are not booleans.
    assert q.is_answer_correct(0) is False
    assert q.is_answer_correct("false") is False


def test_matching_requires_exact_mapping():
    q = _matching()
    assert q.is_answer_correct({"Cloud": "Cumulus", "Wind": "Cumulus"}) is False
    assert q.is_answer_correct({"Cloud": "Cumulus", "Wind": "Thermal"}) is True
    assert q.is_answer_correct({"Cloud": "Cumulus"}) is False
    assert q.is_answer_correct({"Cloud": "Cumulus", "Wind": "Thermal", "Rain": "Thermal"}) is False


def test_matching_accepts_pair_list():
    q = _matching()
    answer = [{"left": "Cloud", "right": "Cumulus"}, {"left": "Wind", "right": "Thermal"}]
    assert q.is_answer_correct(answer) is True


def test_text_question_is_not_auto_graded():
    q = Question(id="q", kind=QuestionKind.text, reference_answer="Into the wind")
    assert q.is_auto_gradable is False
    assert q.is_answer_correct("Into the wind") is None
    assert q.is_answer_correct(None) is None


def test_malformed_answer_is_incorrect():
    assert _multiple().is_answer_correct("X") is False
    assert _matching().is_answer_correct("Cloud=Cumulus") is False
    assert _single().is_answer_correct(["B"]) is False


def test_coerce_answer_variants():
    assert coerce_answer(QuestionKind.true_false, True) == BoolAnswer(True)
    assert coerce_answer(QuestionKind.multiple_choice, ["a", "b"]) == ChoiceSetAnswer(frozenset({"a", "b"}))
    assert coerce_answer(QuestionKind.matching, {"a": "b"}) == MatchingAnswer(pairs={"a": "b"})
    assert coerce_answer(QuestionKind.single_choice, None) is None

    with pytest.raises(GradingInputError):
        coerce_answer(QuestionKind.true_false, "yes")
    with pytest.raises(GradingInputError):
        coerce_answer(QuestionKind.matching, {"a": 1})


def test_out_of_range_index_rejected():
    with pytest.raises(ValidationError):
        Question(id="q", kind=QuestionKind.single_choice, options=["A"], correct_option_index=3)


def test_duplicate_left_item_rejected():
    with pytest.raises(ValidationError):
        Question(
            id="q",
            kind=QuestionKind.matching,
            options=["Cloud"],
            right_items=["Cumulus", "Thermal"],
            correct_pairs=[MatchingPair(left="Cloud", right="Cumulus"), MatchingPair(left="Cloud", right="Thermal")],
        )


def test_kind_aliases():
    assert QuestionKind.parse("single") is QuestionKind.single_choice
    assert QuestionKind.parse("Boolean") is QuestionKind.true_false
    assert QuestionKind.parse("image") is QuestionKind.image
    assert QuestionKind.parse("essay") is QuestionKind.unknown
    assert QuestionKind.parse("") is QuestionKind.unknown


def test_from_content_matching_pairs():
    q = Question.from_content(
        {
            "id": "m1",
            "type": "matching",
            "text": "Match",
            "matchingPairs": [{"left": "Cloud", "right": "Cumulus"}, {"left": "Wind", "right": "Thermal"}],
        }
    )
    assert q.options == ["Cloud", "Wind"]
    assert q.right_items == ["Cumulus", "Thermal"]
    assert q.correct_answer() == {"Cloud": "Cumulus", "Wind": "Thermal"}


def test_from_content_local_image_gets_asset_path():
    q = Question.from_content(
        {"id": "q", "type": "true_false", "image_url": "wing.png", "correctAnswer": True},
        asset_base_path="assets/tests/basics",
    )
    assert q.image_url == "assets/tests/basics/wing.png"
    assert q.is_local_image is True

    remote = Question.from_content(
        {"id": "q", "type": "true_false", "img_url": "https://cdn.example.com/wing.png", "correctAnswer": True},
        asset_base_path="assets/tests/basics",
    )
    assert remote.image_url == "https://cdn.example.com/wing.png"
    assert remote.is_local_image is False


def test_correct_answer_shapes():
    assert _single().correct_answer() == "B"
    assert _multiple().correct_answer() == ["X", "Z"]


def test_shuffle_is_stable_per_seed():
    q = Question(id="m", kind=QuestionKind.matching, right_items=[str(i) for i in range(10)])
    first = q.shuffled_right_items("u:t:m:1")
    assert q.shuffled_right_items("u:t:m:1") == first
    assert sorted(first) == sorted(q.right_items)


def test_display_only_items_take_no_answer():
    image = Question.from_content({"id": "fig", "type": "image", "image_url": "https://cdn.example.com/wing.png"})
    odd = Question.from_content({"id": "odd", "type": "essay", "text": "?"})

    for q in (image, odd):
        assert q.is_display_only is True
        assert q.is_auto_gradable is False
        assert q.is_answer_correct("anything") is None
        assert q.correct_answer() is None

    with pytest.raises(GradingInputError):
        coerce_answer(QuestionKind.image, "anything")

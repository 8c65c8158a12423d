"""
Question service: default question bank, room question layout, public view
"""
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from models import Question
from schemas import (
    ChoiceOut,
    GameSettings,
    GameState,
    GameStatus,
    QuestionIn,
    QuestionOut,
    status_of,
)

DEFAULT_QUESTION_BANK: List[Dict] = [
    {
        "stem": "What color do you get when you mix blue and yellow?",
        "choices": [
            {"id": "a", "label": "Red", "is_correct": False},
            {"id": "b", "label": "Green", "is_correct": True},
            {"id": "c", "label": "Orange", "is_correct": False},
            {"id": "d", "label": "Purple", "is_correct": False},
        ],
        "scavenger_instruction": "Find something or someone wearing the color green!",
    },
    {
        "stem": "What do bees make?",
        "choices": [
            {"id": "a", "label": "Wax", "is_correct": False},
            {"id": "b", "label": "Pollen", "is_correct": False},
            {"id": "c", "label": "Honey", "is_correct": True},
            {"id": "d", "label": "Nectar", "is_correct": False},
        ],
        "scavenger_instruction": "Find something or someone that's as sweet as honey!",
    },
    {
        "stem": "Which part of your body lets you smell?",
        "choices": [
            {"id": "a", "label": "Nose", "is_correct": True},
            {"id": "b", "label": "Eyes", "is_correct": False},
            {"id": "c", "label": "Mouth", "is_correct": False},
            {"id": "d", "label": "Hands", "is_correct": False},
        ],
        "scavenger_instruction": "Find something that smells good!",
    },
    {
        "stem": "What do you call a baby cat?",
        "choices": [
            {"id": "a", "label": "Cub", "is_correct": False},
            {"id": "b", "label": "Kitten", "is_correct": True},
            {"id": "c", "label": "Pup", "is_correct": False},
            {"id": "d", "label": "Calf", "is_correct": False},
        ],
        "scavenger_instruction": "Find something small and cute!",
    },
    {
        "stem": "How many days are there in a leap year?",
        "choices": [
            {"id": "a", "label": "365", "is_correct": False},
            {"id": "b", "label": "364", "is_correct": False},
            {"id": "c", "label": "366", "is_correct": True},
            {"id": "d", "label": "367", "is_correct": False},
        ],
        "scavenger_instruction": "Find something that represents the number 366!",
    },
]


def build_room_questions(
    room_id: str,
    settings: GameSettings,
    supplied: Optional[List[QuestionIn]] = None
) -> List[Question]:
    """
    One Question row per (round, question) slot of the game

    Supplied questions take their slot; every slot left empty is filled from
    the default bank, cycling in slot order.

    Raises:
        ValueError: a supplied question is outside the configured rounds /
            questions-per-round, or two supplied questions share a slot
    """
    by_slot: Dict[Tuple[int, int], QuestionIn] = {}
    for q in supplied or []:
        slot = (q.round_number, q.question_number)
        if q.round_number > settings.number_of_rounds or q.question_number > settings.questions_per_round:
            raise ValueError(f"Question slot {slot} is outside the game layout")
        if slot in by_slot:
            raise ValueError(f"Duplicate question for slot {slot}")
        by_slot[slot] = q

    rows: List[Question] = []
    bank_index = 0
    for round_number in range(1, settings.number_of_rounds + 1):
        for question_number in range(1, settings.questions_per_round + 1):
            supplied_q = by_slot.get((round_number, question_number))
            if supplied_q is not None:
                stem = supplied_q.stem
                choices = [c.model_dump() for c in supplied_q.choices]
                instruction = supplied_q.scavenger_instruction
            else:
                default = DEFAULT_QUESTION_BANK[bank_index % len(DEFAULT_QUESTION_BANK)]
                stem = default["stem"]
                choices = [dict(c) for c in default["choices"]]
                instruction = default["scavenger_instruction"]
            bank_index += 1
            rows.append(Question(
                room_id=room_id,
                round_number=round_number,
                question_number=question_number,
                stem=stem,
                choices=choices,
                scavenger_instruction=instruction,
            ))
    return rows


def get_question_by_position(db: Session, room_id: str, round_number: int, question_number: int) -> Optional[Question]:
    return db.query(Question).filter(
        Question.room_id == room_id,
        Question.round_number == round_number,
        Question.question_number == question_number
    ).first()


def find_choice(question: Question, choice_id: str) -> Optional[Dict]:
    for choice in question.choices:
        if choice["id"] == choice_id:
            return choice
    return None


def correct_choice_id(question: Question) -> Optional[str]:
    for choice in question.choices:
        if choice.get("is_correct"):
            return choice["id"]
    return None


def is_answer_revealed(question: Question, state: GameState) -> bool:
    """
    Whether players may see the correct choice yet

    - lobby: never (nothing has been played)
    - finished: always
    - earlier questions: yes
    - the current question: once the room has left its trivia phase
    """
    status = status_of(state)
    if status == GameStatus.LOBBY:
        return False
    if status == GameStatus.FINISHED:
        return True
    position = (question.round_number, question.question_number)
    current = (state.current_round, state.current_question)
    if position < current:
        return True
    if position == current:
        return status != GameStatus.TRIVIA
    return False


def to_question_out(question: Question, state: GameState) -> QuestionOut:
    return QuestionOut(
        id=question.id,
        room_id=question.room_id,
        round_number=question.round_number,
        question_number=question.question_number,
        stem=question.stem,
        choices=[ChoiceOut(id=c["id"], label=c["label"]) for c in question.choices],
        scavenger_instruction=question.scavenger_instruction,
        correct_choice_id=correct_choice_id(question) if is_answer_revealed(question, state) else None,
    )

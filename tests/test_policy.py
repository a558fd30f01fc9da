from assistant.policy import apply_reset, decide, derive_state
from assistant.prompts import GREETING, QUESTIONS
from assistant.session import DialogueState, Session, Slots


def test_state_follows_fill_order():
    assert derive_state(Slots()) is DialogueState.AWAITING_FROM
    assert derive_state(Slots(destination="Dubai")) is DialogueState.AWAITING_FROM
    assert derive_state(Slots(origin="London")) is DialogueState.AWAITING_TO
    assert derive_state(Slots("London", "Dubai")) is DialogueState.AWAITING_DATE
    assert derive_state(Slots("London", "Dubai", "2026-10-26")) is DialogueState.READY


def test_ask_one_slot_at_a_time():
    sess = Session()
    d = decide(sess)
    assert d.action == "ask"
    assert d.missing == ["origin"]
    assert d.question == QUESTIONS["origin"]
    assert d.greet is True
    assert d.text.startswith(GREETING)
    assert sess.state is DialogueState.AWAITING_FROM


def test_greeting_only_once():
    sess = Session(slots=Slots(origin="London"), greeted=True)
    d = decide(sess)
    assert d.greet is False
    assert d.missing == ["destination"]
    assert d.text == QUESTIONS["destination"]


def test_ask_all_missing(monkeypatch):
    monkeypatch.setenv("ASK_MODE", "all")
    d = decide(Session(slots=Slots(destination="Dubai")))
    assert d.missing == ["origin", "date"]
    assert d.question == f"{QUESTIONS['origin']} {QUESTIONS['date']}"


def test_complete_slots_trigger_search():
    sess = Session(slots=Slots("London", "Dubai", "2026-10-26"))
    assert decide(sess).action == "search"
    assert sess.state is DialogueState.READY


def test_reset_all_and_date_only():
    sess = Session(slots=Slots("London", "Dubai", "2026-10-26"))
    apply_reset(sess)
    assert sess.slots == Slots()
    assert sess.state is DialogueState.COMPLETED

    sess = Session(slots=Slots("London", "Dubai", "2026-10-26"))
    apply_reset(sess, mode="date")
    assert sess.slots == Slots("London", "Dubai", None)
    assert decide(sess).missing == ["date"]

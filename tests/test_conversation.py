import pytest

from assistant.conversation import handle_turn
from assistant.prompts import QUESTIONS
from assistant.session import DialogueState, Session, Slots
from assistant.tools.flights import KiwiProvider
from util.exceptions import LLMError, SearchError


def test_one_shot_request_searches_once(today, llm, provider):
    sess = Session()
    reply = handle_turn(sess, "from London to Dubai next Monday", provider=provider, llm=llm, today=today)

    assert provider.calls == [("London", "Dubai", "2026-10-26")]
    assert llm.calls == []
    assert reply.startswith("Here are the best flights from London to Dubai on 2026-10-26:")
    assert len(reply.splitlines()) == 4
    assert sess.slots == Slots()
    assert sess.state is DialogueState.COMPLETED


def test_greeting_asks_for_origin_only(today, llm, provider):
    sess = Session()
    reply = handle_turn(sess, "hey", provider=provider, llm=llm, today=today)

    assert reply == QUESTIONS["origin"]
    assert [t["role"] for t in sess.history] == ["system", "user", "assistant"]
    assert provider.calls == []
    prompt = llm.calls[0]["prompt"]
    assert "departure city" in prompt
    assert "greeting" in prompt
    assert llm.calls[0]["history"] == []
    assert "Private context: Context: from=? to=? date=?" in llm.calls[0]["system"]


def test_second_turn_does_not_greet(today, llm, provider):
    sess = Session()
    handle_turn(sess, "hey", provider=provider, llm=llm, today=today)
    handle_turn(sess, "London", provider=provider, llm=llm, today=today)
    assert sess.slots.origin == "London"
    assert "greeting" not in llm.calls[1]["prompt"]
    assert "destination city" in llm.calls[1]["prompt"]


def test_ask_all_mode(monkeypatch, today, llm, provider):
    monkeypatch.setenv("ASK_MODE", "all")
    handle_turn(Session(), "hey", provider=provider, llm=llm, today=today)
    assert "departure city, destination city, travel date" in llm.calls[0]["prompt"]


def test_partial_slots_never_search(today, llm, provider):
    sess = Session()
    for text in ["hey", "to Rome", "tomorrow"]:
        handle_turn(sess, text, provider=provider, llm=llm, today=today)
    assert provider.calls == []
    assert sess.slots == Slots(None, "Rome", "2026-10-20")
    assert sess.state is DialogueState.AWAITING_FROM

    handle_turn(sess, "from Paris", provider=provider, llm=llm, today=today)
    assert provider.calls == [("Paris", "Rome", "2026-10-20")]


def test_reset_then_same_message_searches_again(today, llm, provider):
    sess = Session()
    handle_turn(sess, "from London to Dubai next Monday", provider=provider, llm=llm, today=today)
    handle_turn(sess, "from London to Dubai next Monday", provider=provider, llm=llm, today=today)
    assert len(provider.calls) == 2


def test_date_only_reset_keeps_route(monkeypatch, today, llm, provider):
    monkeypatch.setenv("RESET_MODE", "date")
    sess = Session()
    handle_turn(sess, "from London to Dubai next Monday", provider=provider, llm=llm, today=today)
    assert sess.slots == Slots("London", "Dubai", None)

    handle_turn(sess, "tomorrow", provider=provider, llm=llm, today=today)
    assert provider.calls[-1] == ("London", "Dubai", "2026-10-20")


def test_no_flights_keeps_slots(today, llm, make_provider):
    provider = make_provider([])
    sess = Session()
    reply = handle_turn(sess, "from London to Dubai next Monday", provider=provider, llm=llm, today=today)
    assert reply.startswith("Sorry, I couldn't find any flights from London to Dubai")
    assert sess.slots == Slots("London", "Dubai", "2026-10-26")


def test_unresolved_city_apology(today, llm):
    sess = Session()
    reply = handle_turn(sess, "from Springfield to Dubai on 2026-11-02", provider=KiwiProvider(api_key="k"),
                        llm=llm, today=today)
    assert "'Springfield'" in reply
    assert sess.slots == Slots("Springfield", "Dubai", "2026-11-02")


def test_search_failure_propagates_without_reply(today, llm, provider, monkeypatch):
    def boom(*a, **kw):
        raise SearchError("down")

    monkeypatch.setattr(provider, "search", boom)
    sess = Session()
    with pytest.raises(SearchError):
        handle_turn(sess, "from London to Dubai next Monday", provider=provider, llm=llm, today=today)
    assert sess.history[-1]["role"] == "user"
    assert sess.slots == Slots("London", "Dubai", "2026-10-26")


def test_llm_failure_propagates(today, provider):
    def failing_llm(*a, **kw):
        raise LLMError("nope")

    sess = Session()
    with pytest.raises(LLMError):
        handle_turn(sess, "hey", provider=provider, llm=failing_llm, today=today)
    assert [t["role"] for t in sess.history] == ["system", "user"]


def test_extra_questions_are_trimmed(today, make_llm, provider):
    llm = make_llm("Hi there! Where are you flying from? And where to? When?")
    reply = handle_turn(Session(), "hey", provider=provider, llm=llm, today=today)
    assert reply == "Hi there! Where are you flying from?"


def test_history_is_bounded(today, llm, provider):
    sess = Session()
    for _ in range(12):
        handle_turn(sess, "hey", provider=provider, llm=llm, today=today)
    assert len(sess.history) == 11
    assert sess.history[0]["role"] == "system"


def test_llm_history_excludes_current_message(today, llm, provider):
    sess = Session()
    handle_turn(sess, "hey", provider=provider, llm=llm, today=today)
    handle_turn(sess, "London", provider=provider, llm=llm, today=today)

    history = llm.calls[1]["history"]
    assert [t["role"] for t in history] == ["user", "assistant"]
    assert history[0]["content"] == "hey"
    assert "User: London" in llm.calls[1]["prompt"]


def test_date_refinement_keeps_destination(today, llm, provider):
    sess = Session(slots=Slots("London", "Dubai", None), state=DialogueState.AWAITING_DATE, greeted=True)
    handle_turn(sess, "I'd like to depart on Friday", provider=provider, llm=llm, today=today)
    assert provider.calls == [("London", "Dubai", "2026-10-23")]

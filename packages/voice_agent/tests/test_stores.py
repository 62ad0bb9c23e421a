from __future__ import annotations

import json
from pathlib import Path

from voice_agent.store.history import ConversationStore
from voice_agent.store.hints import HintStore
from voice_agent.store.messages import StoredMessage
from voice_agent.store.pending import PendingQueue
from voice_agent.store.rules import RulesStore


def test_pending_queue_keeps_newest_entries(tmp_path: Path) -> None:
    queue = PendingQueue(tmp_path / "pending.json", max_entries=3)
    for index in range(5):
        queue.append("assistant", f"result {index}")

    assert [entry.text for entry in queue.peek()] == ["result 2", "result 3", "result 4"]


def test_pending_drain_clears_the_queue(tmp_path: Path) -> None:
    queue = PendingQueue(tmp_path / "pending.json")
    queue.append("assistant", "Reminder set.")

    drained = queue.drain()

    assert [(entry.role, entry.text) for entry in drained] == [("assistant", "Reminder set.")]
    assert not queue.path.exists()
    assert queue.drain() == []


def test_pending_queue_tolerates_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "pending.json"
    path.write_text("{oops", encoding="utf-8")
    queue = PendingQueue(path)

    queue.append("assistant", "fresh")

    assert [entry.text for entry in queue.drain()] == ["fresh"]


def test_history_round_trip_drops_malformed_entries(tmp_path: Path) -> None:
    path = tmp_path / "history.json"
    path.write_text(
        json.dumps(
            [
                {"role": "user", "text": "hi", "timestamp": "t1"},
                {"role": "tool", "text": "secret"},
                {"role": "assistant"},
                "junk",
                {"role": "assistant", "text": "hello", "timestamp": "t2"},
            ]
        ),
        encoding="utf-8",
    )

    history = ConversationStore(path).load_history()

    assert history == [
        StoredMessage(role="user", text="hi", timestamp="t1"),
        StoredMessage(role="assistant", text="hello", timestamp="t2"),
    ]


def test_history_is_capped(tmp_path: Path) -> None:
    store = ConversationStore(tmp_path / "history.json", max_entries=2)
    for text in ("a", "b", "c"):
        store.append(StoredMessage.now("user", text))

    assert [entry.text for entry in store.load_history()] == ["b", "c"]

    store.clear_history()
    assert store.load_history() == []


def test_hints_are_keyed_per_target(tmp_path: Path) -> None:
    hints = HintStore(tmp_path / "hints")

    assert HintStore.key("com.whatsapp") == "ui_hint_com_whatsapp"
    assert hints.get_hints("com.whatsapp") == ""

    hints.save_hints("com.whatsapp", "Search icon is top right.")
    hints.save_hints("com.whatsapp", "Use the search icon.")

    assert hints.get_hints("com.whatsapp") == "Use the search icon."
    assert (tmp_path / "hints" / "ui_hint_com_whatsapp.txt").exists()
    hints.clear_hints("com.whatsapp")
    assert hints.get_hints("com.whatsapp") == ""


def test_rules_save_writes_subscribed_sources(tmp_path: Path) -> None:
    store = RulesStore(tmp_path / "rules.json")
    store.add_rule(target_source="org.telegram.messenger", instruction="Read it")
    store.add_rule(target_source="com.whatsapp", instruction="Summarize")
    store.add_rule(target_source="com.android.mms", instruction="Ignore", enabled=False)

    sources = json.loads(store.sources_path.read_text(encoding="utf-8"))

    assert sources == ["com.whatsapp", "org.telegram.messenger"]
    assert store.subscribed_sources() == sources


def test_rules_use_camel_case_on_disk(tmp_path: Path) -> None:
    store = RulesStore(tmp_path / "rules.json")
    rule = store.add_rule(target_source="com.whatsapp", instruction="Reply", human_label="Chats")

    raw = json.loads((tmp_path / "rules.json").read_text(encoding="utf-8"))

    assert raw[0]["targetSource"] == "com.whatsapp"
    assert raw[0]["humanLabel"] == "Chats"
    assert raw[0]["id"] == rule.id
    assert rule.id.startswith("rule_")


def test_rules_update_and_delete(tmp_path: Path) -> None:
    store = RulesStore(tmp_path / "rules.json")
    first = store.add_rule(target_source="com.whatsapp", instruction="Reply")
    store.add_rule(target_source="com.whatsapp", instruction="Forward", condition="from Bob")

    updated = store.update_rule(first.id, enabled=False)

    assert updated is not None
    assert not updated.enabled
    assert [rule.instruction for rule in store.rules_for_source("com.whatsapp")] == ["Forward"]
    assert store.update_rule("missing", enabled=True) is None
    assert store.delete_rule(first.id)
    assert not store.delete_rule(first.id)
    assert store.delete_rules_for_source("com.whatsapp") == 1
    assert store.subscribed_sources() == []


def test_rules_skip_invalid_entries(tmp_path: Path) -> None:
    path = tmp_path / "rules.json"
    path.write_text(
        json.dumps(
            [
                {"targetSource": "com.whatsapp", "instruction": "Reply"},
                {"targetSource": "com.whatsapp"},
            ]
        ),
        encoding="utf-8",
    )
    store = RulesStore(path)

    assert len(store.load_rules()) == 1
    assert store.sync_on_startup() == ["com.whatsapp"]
    assert store.sources_path.exists()


def test_pending_queue_tolerates_invalid_utf8(tmp_path: Path) -> None:
    path = tmp_path / "pending.json"
    path.write_bytes(b"\xff\xfe\x00garbage")
    queue = PendingQueue(path)

    assert queue.peek() == []
    assert queue.drain() == []
    assert not path.exists()

    path.write_bytes(b"\xff\xfe\x00garbage")
    queue.append("assistant", "Timer set.")
    assert [entry.text for entry in queue.drain()] == ["Timer set."]


def test_history_and_rules_tolerate_invalid_utf8(tmp_path: Path) -> None:
    history_path = tmp_path / "history.json"
    rules_path = tmp_path / "rules.json"
    history_path.write_bytes(b"\xff\xfe\x00garbage")
    rules_path.write_bytes(b"\xff\xfe\x00garbage")

    assert ConversationStore(history_path).load_history() == []
    assert RulesStore(rules_path).load_rules() == []

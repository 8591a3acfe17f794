import pytest
from paintcheck.fingerprint.command_normalizer import CommandNormalizer, looks_like_script, resolve_method
from paintcheck.shared.schemas import Command


def test_resolve_method_aliases():
    assert resolve_method({"method": "drawRect"}) == "drawRect"
    assert resolve_method({"cmd": "drawPath"}) == "drawPath"
    assert resolve_method({"name": "clipRect"}) == "clipRect"
    assert resolve_method({"method": "", "cmd": "save"}) == "save"
    assert resolve_method({"params": {}}) == "unknown"


def test_deny_listed_fields_are_stripped():
    normalizer = CommandNormalizer()
    entry = {
        "method": "drawTextBlob",
        "params": {
            "x": 10,
            "y": 20,
            "blob": "0x7f3a22c0",
            "paint": {"color": "#FF000000", "typeface": "Typeface@0x55"},
            "timestamp": 12345.6,
        },
    }
    [command] = normalizer.normalize([entry])
    assert command == Command(method="drawTextBlob", params={"x": 10, "y": 20, "paint": {"color": "#FF000000"}})


def test_missing_params_become_empty():
    [command] = CommandNormalizer().normalize([{"method": "restore"}])
    assert command.params == {}


@pytest.mark.parametrize("text", [
    "function(){ return 1 }",
    "const x = 1",
    "let y = 2",
    "var z",
    "document.body.style.opacity = '0.9999'",
    "window.scrollBy(0, 1)",
    "() => null",
    "a" * 501,
])
def test_script_like_text_is_detected(text):
    assert looks_like_script(text)


def test_plain_text_is_not_script():
    assert not looks_like_script("Welcome to the dashboard")


def test_script_text_draws_are_dropped():
    entries = [
        {"method": "drawRect", "params": {"x": 0}},
        {"method": "drawTextBlob", "params": {"text": "init(function() { track(); })"}},
        {"method": "drawTextBlob", "params": {"text": "Hello"}},
    ]
    commands = CommandNormalizer().normalize(entries)
    assert [c.method for c in commands] == ["drawRect", "drawTextBlob"]
    assert commands[1].params["text"] == "Hello"


def test_non_text_commands_keep_script_like_params():
    entries = [{"method": "drawRect", "params": {"label": "function("}}]
    assert len(CommandNormalizer().normalize(entries)) == 1


def test_text_limit_is_configurable():
    normalizer = CommandNormalizer(script_text_limit=5)
    entries = [{"method": "drawTextBlob", "params": {"text": "Longer than five"}}]
    assert normalizer.normalize(entries) == []


def test_dom_text_is_appended_after_layer_commands():
    layer = [
        {"method": "drawRect", "params": {}},
        {"method": "drawTextBlob", "params": {"text": "window.onload = start"}},
    ]
    dom_text = [
        {"method": "drawTextBlob", "params": {"text": "Title", "x": 8, "y": 30}},
        {"method": "drawTextBlob", "params": {"text": "Read the document.", "x": 8, "y": 60}},
        {"method": "drawTextBlob", "params": {"text": "Visit our outlet store", "x": 8, "y": 90}},
    ]
    commands = CommandNormalizer().normalize(layer, dom_text=dom_text)
    assert [c.method for c in commands] == ["drawRect", "drawTextBlob", "drawTextBlob", "drawTextBlob"]
    assert [c.params["text"] for c in commands[1:]] == ["Title", "Read the document.", "Visit our outlet store"]
    assert commands[1].params == {"text": "Title", "x": 8, "y": 30}


def test_stable_order_sorts_commands():
    entries = [{"method": "drawRect", "params": {}}, {"method": "clipRect", "params": {}}]
    plain = CommandNormalizer().normalize(entries)
    stable = CommandNormalizer(stable_order=True).normalize(list(reversed(entries)))
    assert [c.method for c in plain] == ["drawRect", "clipRect"]
    assert [c.method for c in stable] == ["clipRect", "drawRect"]

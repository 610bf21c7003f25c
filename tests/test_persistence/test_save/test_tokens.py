from persistence.save import tokens

def test_escape_separators():
    assert tokens.escape("Harbor:Dock|North") == "Harbor*COLON*Dock*PIPE*North"
    assert tokens.unescape("Harbor*COLON*Dock*PIPE*North") == "Harbor:Dock|North"

def test_join_tokens_formats_values():
    data = tokens.join_tokens({1: True, 2: False, 3: 12, 4: 0.5, 5: "a:b"})

    assert data == "1:1|2:0|3:12|4:0.5|5:a*COLON*b"

def test_split_tokens_keeps_values_escaped():
    pairs = tokens.split_tokens("1:1|5:a*COLON*b|garbage|7:")

    assert pairs == [("1", "1"), ("5", "a*COLON*b"), ("7", "")]

def test_split_empty():
    assert tokens.split_tokens("") == []
    assert tokens.split_list("") == []

def test_string_with_separators_survives_a_pair():
    value = "Dear diary: the tide | is high"
    data = tokens.join_tokens([(9, value)])

    ((key, raw),) = tokens.split_tokens(data)

    assert key == "9"
    assert tokens.unescape(raw) == value

def test_parse_bool():
    assert tokens.parse_bool("1")
    assert tokens.parse_bool("True")
    assert not tokens.parse_bool("0")
    assert not tokens.parse_bool("")

def test_lists():
    data = tokens.join_list(["Harbor", "Cellar|Deep"])

    assert data == "Harbor|Cellar*PIPE*Deep"
    assert tokens.split_list(data) == ["Harbor", "Cellar|Deep"]

from webify.features.headers import REDACTED, HeaderAttribute, classifyHeaders

HEADERS = {
	"Accept": "text/html",
	"Referer": "http://localhost:3000/",
	"User-Agent": "curl/8.0",
	"Authorization": "Bearer secret",
	"X-Forwarded-For": ["10.0.0.1", "10.0.0.2"],
}


def test_nothing_is_classified_outside_debug():
	assert classifyHeaders(HEADERS, False) == []
	assert classifyHeaders({}, False) == []


def test_debug_classification():
	assert classifyHeaders(HEADERS, True) == [
		HeaderAttribute("Accept", "text/html"),
		HeaderAttribute("Authorization", REDACTED),
		HeaderAttribute("X-Forwarded-For", "10.0.0.1,10.0.0.2"),
	]


def test_names_are_matched_case_insensitively():
	res = classifyHeaders(
		{"REFERER": "a", "user-agent": "b", "AUTHORIZATION": "c", "x-id": "d"}, True
	)
	assert [_.name.lower() for _ in res] == ["authorization", "x-id"]
	assert res[0].value == "[REDACTED]"


def test_redaction_hides_every_value():
	res = classifyHeaders({"authorization": ["Basic a", "Bearer b"]}, True)
	assert res == [HeaderAttribute("authorization", "[REDACTED]")]


# EOF

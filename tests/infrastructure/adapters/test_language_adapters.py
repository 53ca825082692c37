import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from lingoflow.infrastructure.adapters import (
    EchoLanguageModel,
    JsonFileDictionary,
    OpenAILanguageModel,
    SimpleTextAnalyzer,
    StaticDictionary,
)

# --- Text analysis ---


def test_simple_tokenizer_keeps_accents_and_inner_hyphens():
    analyzer = SimpleTextAnalyzer()
    tokens = analyzer.tokenize("¿Quieres un café? ¡Es peso-pluma, l'été!")
    assert tokens == ["Quieres", "un", "café", "Es", "peso-pluma", "l'été"]


def test_simple_lemmatizer_lowercases_in_order():
    assert SimpleTextAnalyzer().lemmatize(["Hola", "MUNDO"]) == ["hola", "mundo"]


def test_simple_analyzer_has_no_tagger_and_fixed_language():
    analyzer = SimpleTextAnalyzer(default_language="es")
    assert analyzer.part_of_speech("gato") is None
    assert analyzer.detect_language("anything") == "es"
    assert SimpleTextAnalyzer().detect_language("anything") is None


# --- Dictionary ---


def test_static_dictionary_seed_entries():
    dictionary = StaticDictionary()
    assert dictionary.lookup("Gracias") == "thank you"
    assert dictionary.lookup("merci", "fr") == "thank you"
    assert dictionary.lookup("perro") is None


def test_static_dictionary_custom_entries():
    dictionary = StaticDictionary({"Perro": "dog"})
    assert dictionary.lookup("perro") == "dog"
    assert dictionary.lookup("hola") is None
    assert len(dictionary) == 1


def test_json_dictionary_accepts_list_and_mapping(tmp_path):
    as_list = tmp_path / "list.json"
    as_list.write_text(json.dumps([{"term": "gato", "gloss": "cat"}, {"term": "", "gloss": "x"}]))
    as_map = tmp_path / "map.json"
    as_map.write_text(json.dumps({"perro": "dog"}))

    assert JsonFileDictionary(as_list).lookup("gato") == "cat"
    assert len(JsonFileDictionary(as_list)) == 1
    assert JsonFileDictionary(as_map).lookup("perro") == "dog"


def test_json_dictionary_missing_file_uses_seed(tmp_path):
    dictionary = JsonFileDictionary(tmp_path / "absent.json")
    assert dictionary.lookup("agua") == "water"


@pytest.mark.parametrize("content", ["42", "\"gato\"", "true", "null"])
def test_json_dictionary_scalar_file_uses_seed(tmp_path, content):
    path = tmp_path / "scalar.json"
    path.write_text(content)

    dictionary = JsonFileDictionary(path)

    assert dictionary.lookup("agua") == "water"
    assert len(dictionary) == len(StaticDictionary())


# --- LLM ---


@pytest.mark.asyncio
async def test_echo_model():
    llm = EchoLanguageModel()
    assert await llm.rewrite("Use gato in a sentence.") == "Use gato in a sentence."
    assert await llm.verify("cat", "gato") == "cat"


def _completion(content):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


@pytest.mark.asyncio
async def test_openai_model_rewrite_and_verify():
    with patch("openai.AsyncOpenAI") as mock_cls:
        client = mock_cls.return_value
        client.chat.completions.create = AsyncMock(
            side_effect=[_completion("  El gato duerme.  "), _completion("cat")]
        )
        llm = OpenAILanguageModel(api_key="sk-test", model="gpt-test")

        assert await llm.rewrite("Use gato in a sentence.") == "El gato duerme."
        assert await llm.verify("gato", "gato") == "cat"

    first_call = client.chat.completions.create.await_args_list[0]
    assert first_call.kwargs["model"] == "gpt-test"
    assert first_call.kwargs["messages"][1] == {
        "role": "user",
        "content": "Use gato in a sentence.",
    }


@pytest.mark.asyncio
async def test_openai_model_rejects_empty_completion():
    with patch("openai.AsyncOpenAI") as mock_cls:
        mock_cls.return_value.chat.completions.create = AsyncMock(return_value=_completion(None))
        llm = OpenAILanguageModel(api_key="sk-test")

        with pytest.raises(ValueError):
            await llm.rewrite("Use gato in a sentence.")

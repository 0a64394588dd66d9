"""Unit tests for Summarizer with specific scenarios."""

import json
from datetime import UTC, datetime
from unittest.mock import Mock, patch

from botocore.exceptions import ClientError, NoCredentialsError

from rssreader.config import BedrockConfig
from rssreader.models import Article, RedditComment, RedditPost
from rssreader.summarize import (
    ARTICLE_PROMPT,
    GENERIC_ERROR_MESSAGE,
    NO_SUMMARY_MESSAGE,
    NOT_CONFIGURED_MESSAGE,
    Summarizer,
    build_question_prompt,
    comment_thread_lines,
)


def nova_response(text: str) -> dict:
    body = Mock()
    body.read.return_value = json.dumps(
        {"output": {"message": {"role": "assistant", "content": [{"text": text}]}}}
    ).encode("utf-8")
    return {"body": body}


def llama_response(text: str) -> dict:
    body = Mock()
    body.read.return_value = json.dumps({"generation": text}).encode("utf-8")
    return {"body": body}


def sent_body(mock_client: Mock) -> dict:
    return json.loads(mock_client.invoke_model.call_args.kwargs["body"])


def sent_prompt(mock_client: Mock) -> str:
    body = sent_body(mock_client)
    if "prompt" in body:
        return body["prompt"]
    return body["messages"][0]["content"][0]["text"]


class TestSummarizerUnit:
    """Unit tests for Summarizer with specific content and error scenarios."""

    def test_bedrock_successful_response(self):
        """Test successful Nova response parsing and request format."""
        with patch("boto3.client") as mock_boto_client:
            mock_client = Mock()
            mock_boto_client.return_value = mock_client
            mock_client.invoke_model.return_value = nova_response("  Key points here.  ")

            summarizer = Summarizer(BedrockConfig())
            result = summarizer.summarize_text("Some article text")

            assert result == "Key points here."
            mock_boto_client.assert_called_once_with("bedrock-runtime", region_name="us-east-1")
            kwargs = mock_client.invoke_model.call_args.kwargs
            assert kwargs["modelId"] == "amazon.nova-micro-v1:0"
            assert kwargs["contentType"] == "application/json"
            body = sent_body(mock_client)
            assert body["inferenceConfig"]["maxTokens"] == 1000
            assert body["messages"][0]["role"] == "user"
            assert sent_prompt(mock_client).endswith("Some article text")

    def test_llama_request_format(self):
        """Test the legacy prompt format used by Llama models."""
        config = BedrockConfig(model_id="meta.llama3-8b-instruct-v1:0")

        with patch("boto3.client") as mock_boto_client:
            mock_client = Mock()
            mock_boto_client.return_value = mock_client
            mock_client.invoke_model.return_value = llama_response("Llama summary")

            summarizer = Summarizer(config)
            result = summarizer.summarize_text("Text")

            assert result == "Llama summary"
            body = sent_body(mock_client)
            assert body["prompt"].endswith("Text")
            assert body["max_gen_len"] == 1000
            assert "messages" not in body

    def test_bedrock_access_denied_error(self):
        """Test handling of Bedrock AccessDenied error."""
        with patch("boto3.client") as mock_boto_client:
            mock_client = Mock()
            mock_boto_client.return_value = mock_client
            error_response = {
                "Error": {
                    "Code": "AccessDeniedException",
                    "Message": "User is not authorized to perform: bedrock:InvokeModel",
                }
            }
            mock_client.invoke_model.side_effect = ClientError(error_response, "InvokeModel")

            result = Summarizer(BedrockConfig()).summarize_text("Some text")

            assert result == "Error: User is not authorized to perform: bedrock:InvokeModel"
            assert mock_client.invoke_model.called

    def test_unexpected_error_returns_generic_message(self):
        with patch("boto3.client") as mock_boto_client:
            mock_client = Mock()
            mock_boto_client.return_value = mock_client
            mock_client.invoke_model.side_effect = RuntimeError("socket closed")

            assert Summarizer(BedrockConfig()).summarize_text("Some text") == GENERIC_ERROR_MESSAGE

    def test_malformed_response_body_returns_generic_message(self):
        with patch("boto3.client") as mock_boto_client:
            mock_client = Mock()
            mock_boto_client.return_value = mock_client
            body = Mock()
            body.read.return_value = b"not json"
            mock_client.invoke_model.return_value = {"body": body}

            assert Summarizer(BedrockConfig()).summarize_text("Some text") == GENERIC_ERROR_MESSAGE

    def test_empty_output_returns_no_summary(self):
        with patch("boto3.client") as mock_boto_client:
            mock_client = Mock()
            mock_boto_client.return_value = mock_client
            mock_client.invoke_model.return_value = nova_response("   ")

            assert Summarizer(BedrockConfig()).summarize_text("Some text") == NO_SUMMARY_MESSAGE

    def test_missing_content_returns_no_summary(self):
        with patch("boto3.client") as mock_boto_client:
            mock_client = Mock()
            mock_boto_client.return_value = mock_client
            body = Mock()
            body.read.return_value = json.dumps({"output": {"message": {}}}).encode("utf-8")
            mock_client.invoke_model.return_value = {"body": body}

            assert Summarizer(BedrockConfig()).summarize_text("Some text") == NO_SUMMARY_MESSAGE

    def test_client_initialization_failure(self):
        """Without a client every call reports the missing configuration."""
        with patch("boto3.client", side_effect=NoCredentialsError()):
            summarizer = Summarizer(BedrockConfig())

        assert summarizer.bedrock_client is None
        assert summarizer.summarize_text("Some text") == NOT_CONFIGURED_MESSAGE

    def test_long_text_truncated(self):
        config = BedrockConfig(max_text_length=100)

        with patch("boto3.client") as mock_boto_client:
            mock_client = Mock()
            mock_boto_client.return_value = mock_client
            mock_client.invoke_model.return_value = nova_response("Short")

            Summarizer(config).summarize_text("a" * 100 + "b" * 50, custom_prompt="{text}")

            assert sent_prompt(mock_client) == "a" * 100

    def test_custom_prompt_placeholder(self):
        with patch("boto3.client") as mock_boto_client:
            mock_client = Mock()
            mock_boto_client.return_value = mock_client
            mock_client.invoke_model.return_value = nova_response("Ok")
            summarizer = Summarizer(BedrockConfig())

            summarizer.summarize_text("BODY", custom_prompt="Before {text} after")
            assert sent_prompt(mock_client) == "Before BODY after"

            summarizer.summarize_text("BODY", custom_prompt="No placeholder")
            assert sent_prompt(mock_client) == "No placeholder"

    def test_summarize_article_uses_article_prompt(self):
        article = Article(
            id="a1",
            title="Title",
            content="Article body",
            url=None,
            publish_date=datetime(2024, 1, 1, tzinfo=UTC),
            feed_title="Feed",
            feed_url="https://example.com/feed",
        )

        with patch("boto3.client") as mock_boto_client:
            mock_client = Mock()
            mock_boto_client.return_value = mock_client
            mock_client.invoke_model.return_value = nova_response("Summary")

            result = Summarizer(BedrockConfig()).summarize_article(article)

            assert result == "Summary"
            assert sent_prompt(mock_client) == ARTICLE_PROMPT.replace("{text}", "Article body")

    def test_answer_question_fills_article_content(self):
        with patch("boto3.client") as mock_boto_client:
            mock_client = Mock()
            mock_boto_client.return_value = mock_client
            mock_client.invoke_model.return_value = nova_response("In 2019.")

            result = Summarizer(BedrockConfig()).answer_question(
                "Launch", "The rocket launched in 2019.", "When?", previous_question="What?"
            )

            assert result == "In 2019."
            prompt = sent_prompt(mock_client)
            assert "Article Content:\nThe rocket launched in 2019." in prompt
            assert "Previous Question:\nWhat?" in prompt
            assert "{text}" not in prompt

    def test_answer_post_question_includes_thread(self):
        post = RedditPost(
            id="p1",
            title="Which laptop?",
            content="Looking for advice",
            url=None,
            publish_date=datetime(2024, 1, 1, tzinfo=UTC),
            author="op",
            subreddit="laptops",
        )
        reply = RedditComment(id="c2", author="bob", body="Agreed", score=1, created_utc=0.0)
        comments = [
            RedditComment(
                id="c1", author="alice", body="Get the light one", score=5, created_utc=0.0,
                replies=[reply],
            )
        ]

        with patch("boto3.client") as mock_boto_client:
            mock_client = Mock()
            mock_boto_client.return_value = mock_client
            mock_client.invoke_model.return_value = nova_response("The light one")

            result = Summarizer(BedrockConfig()).answer_post_question(post, comments, "What to buy?")

            assert result == "The light one"
            prompt = sent_prompt(mock_client)
            assert "Reddit Post Title: Which laptop?" in prompt
            assert "u/alice: Get the light one\n\nu/bob: Agreed" in prompt
            assert "What to buy?" in prompt


class TestPromptHelpersUnit:
    def test_question_prompt_without_previous(self):
        prompt = build_question_prompt("Title", "Why?")

        assert prompt.startswith("Article Title: Title\nArticle Content:\n{text}")
        assert "Please answer the following question:\nWhy?" in prompt
        assert "Previous Question" not in prompt

    def test_question_prompt_with_previous(self):
        prompt = build_question_prompt("Title", "And then?", previous_question="Why?")

        assert "Previous Question:\nWhy?" in prompt
        assert "Current Question:\nAnd then?" in prompt

    def test_thread_lines_in_thread_order(self):
        def make(comment_id, replies=()):
            return RedditComment(
                id=comment_id, author=comment_id, body="x", score=0, created_utc=0.0,
                replies=list(replies),
            )

        comments = [make("a", [make("a1", [make("a1a")]), make("a2")]), make("b")]

        assert comment_thread_lines(comments) == [
            "u/a: x", "u/a1: x", "u/a1a: x", "u/a2: x", "u/b: x",
        ]

"""Summarization gateway backed by Amazon Bedrock."""

import json
import time

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import BedrockConfig
from .logging_config import create_execution_logger
from .models import Article, RedditComment, RedditPost

NOT_CONFIGURED_MESSAGE = (
    "Summarization backend not configured. Please check AWS credentials and region."
)
NO_SUMMARY_MESSAGE = "No summary available"
GENERIC_ERROR_MESSAGE = "Error generating summary"

# Prompts carry a {text} placeholder filled with the (possibly truncated) input
TEXT_PLACEHOLDER = "{text}"

DEFAULT_PROMPT = (
    "Summarize the following text in a concise way, highlighting the key points: {text}"
)

ARTICLE_PROMPT = (
    "Summarize the following article, highlighting the key points, main arguments, "
    "and important conclusions. Focus on providing a concise overview that captures "
    "the essential information:\n\n{text}"
)

POST_PROMPT = (
    "Summarize the following Reddit post, highlighting the main question or discussion "
    "topic, key points made by the author, and any important context provided. Focus on "
    "creating a concise and informative summary that captures the essence of the post:"
    "\n\n{text}"
)


def build_question_prompt(
    title: str, question: str, previous_question: str | None = None
) -> str:
    """Question-answering prompt over an article; content goes in {text}."""
    header = f"Article Title: {title}\nArticle Content:\n{TEXT_PLACEHOLDER}\n\n"
    if previous_question:
        return (
            header
            + f"Previous Question:\n{previous_question}\n\n"
            + f"Current Question:\n{question}\n\n"
            + "Please answer the current question based on the article above. "
            + "If the answer cannot be determined from the article, please state that "
            + "the information is not available in the article."
        )
    return (
        header
        + f"Please answer the following question:\n{question}\n\n"
        + "If the answer cannot be determined from the article, please state that "
        + "the information is not available in the article."
    )


def comment_thread_lines(comments: list[RedditComment]) -> list[str]:
    """``u/author: body`` for every comment, replies after their parent."""
    lines = []
    stack = list(reversed(comments))
    while stack:
        comment = stack.pop()
        lines.append(f"u/{comment.author}: {comment.body}")
        stack.extend(reversed(comment.replies))
    return lines


class Summarizer:
    """Turns a prompt and input text into generated text. Never raises."""

    def __init__(self, config: BedrockConfig, execution_id: str | None = None):
        """Initialize the summarizer with Bedrock configuration."""
        self.config = config
        self.logger = create_execution_logger("summarizer", execution_id)
        self.bedrock_client = None
        self._initialize_bedrock_client()

    def _initialize_bedrock_client(self) -> None:
        """Initialize Bedrock client with error handling."""
        try:
            self.bedrock_client = boto3.client(
                "bedrock-runtime", region_name=self.config.region
            )
            self.logger.info("Initialized Bedrock client", region=self.config.region)
        except (BotoCoreError, ClientError) as e:
            self.logger.warning(
                f"Failed to initialize Bedrock client: {e}", error=str(e)
            )
            self.bedrock_client = None

    @property
    def is_llama(self) -> bool:
        return "llama" in self.config.model_id.lower()

    def _request_body(self, prompt: str) -> dict:
        # Llama: legacy prompt/max_gen_len format
        # Nova and Mistral: messages/inferenceConfig format
        if self.is_llama:
            return {
                "prompt": prompt,
                "max_gen_len": self.config.max_tokens,
                "temperature": 0.3,
                "top_p": 0.9,
            }
        return {
            "messages": [{"role": "user", "content": [{"text": prompt}]}],
            "inferenceConfig": {"maxTokens": self.config.max_tokens, "temperature": 0.3},
        }

    def _response_text(self, response_body: dict) -> str | None:
        if self.is_llama:
            return response_body.get("generation")

        message = response_body.get("output", {}).get("message", {})
        content = message.get("content") or []
        if not content:
            self.logger.error(
                f"Response missing content. Available: {list(response_body.keys())}"
            )
            return None
        return content[0].get("text")

    def _truncate(self, text: str) -> str:
        if len(text) <= self.config.max_text_length:
            return text
        self.logger.warning(
            f"Text exceeds maximum length ({len(text)} chars). "
            f"Truncating to {self.config.max_text_length} chars.",
            text_length=len(text),
            max_text_length=self.config.max_text_length,
        )
        return text[: self.config.max_text_length]

    def summarize_text(self, text: str, custom_prompt: str | None = None) -> str:
        """Generate text for a prompt. Failures come back as a readable message.

        Args:
            text: Input text, truncated to ``max_text_length``
            custom_prompt: Prompt to use instead of the default. A ``{text}``
                placeholder is replaced with the input; without one the prompt
                is sent as is.

        Returns:
            The generated text, or an error/status message
        """
        if not self.bedrock_client:
            self.logger.warning("Bedrock client not available")
            return NOT_CONFIGURED_MESSAGE

        input_text = self._truncate(text or "")
        template = custom_prompt if custom_prompt is not None else DEFAULT_PROMPT
        prompt = template.replace(TEXT_PLACEHOLDER, input_text)

        try:
            self.logger.info(
                "Calling Bedrock API",
                model_id=self.config.model_id,
                content_length=len(input_text),
            )
            start_time = time.time()
            response = self.bedrock_client.invoke_model(
                modelId=self.config.model_id,
                body=json.dumps(self._request_body(prompt)),
                contentType="application/json",
                accept="application/json",
            )
            response_time_ms = int((time.time() - start_time) * 1000)
            response_body = json.loads(response["body"].read())
            summary_text = self._response_text(response_body)

        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            error_message = e.response.get("Error", {}).get("Message", "") or str(e)
            self.logger.error(
                f"Bedrock client error: {error_code} - {error_message}",
                error_code=error_code,
            )
            return f"Error: {error_message}"
        except Exception as e:
            self.logger.error(f"Unexpected error calling Bedrock: {e}", error=str(e))
            return GENERIC_ERROR_MESSAGE

        if not summary_text or not summary_text.strip():
            self.logger.warning(f"Empty response from model {self.config.model_id}")
            return NO_SUMMARY_MESSAGE

        self.logger.info(
            "Generated summary",
            response_length=len(summary_text),
            response_time_ms=response_time_ms,
        )
        return summary_text.strip()

    def summarize_article(self, article: Article) -> str:
        return self.summarize_text(article.content, custom_prompt=ARTICLE_PROMPT)

    def summarize_post(self, post: RedditPost) -> str:
        return self.summarize_text(post.content, custom_prompt=POST_PROMPT)

    def answer_question(
        self,
        title: str,
        content: str,
        question: str,
        previous_question: str | None = None,
    ) -> str:
        """Answer a question using only the given article content."""
        prompt = build_question_prompt(title, question, previous_question)
        return self.summarize_text(content, custom_prompt=prompt)

    def answer_post_question(
        self, post: RedditPost, comments: list[RedditComment], question: str
    ) -> str:
        """Answer a question using a post and its comment thread."""
        thread = "\n\n".join(comment_thread_lines(comments))
        prompt = (
            f"Reddit Post Title: {post.title}\n"
            f"Post Content:\n{post.content}\n\n"
            f"Comments:\n{TEXT_PLACEHOLDER}\n\n"
            "Based solely on the information in the Reddit post and comments above, "
            f"please answer the following question:\n{question}\n\n"
            "If the answer cannot be determined from the post or comments, please state "
            "that the information is not available."
        )
        return self.summarize_text(thread, custom_prompt=prompt)

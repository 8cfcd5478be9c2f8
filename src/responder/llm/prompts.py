"""Prompt templates for reply generation.

Templates use ``str.format`` placeholders; the body is inserted verbatim
after the header lines.
"""

REPLY_SYSTEM_PROMPT = (
    "You are a helpful assistant that users access via email. "
    "Respond professionally and concisely. "
    "Write only the body of your reply: no subject line, no quoted text, "
    "and no signature block."
)

REPLY_USER_PROMPT = """\
Respond to this email:

From: {from_address}
Subject: {subject}

{body}"""

LANGUAGE_INSTRUCTION = " Reply in {language}."

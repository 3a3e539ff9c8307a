# events/sanitizers.py
"""
Input sanitization for organizer-authored event content.

Everything an organizer types that is later rendered to participants
(titles, descriptions, venue, tags, form labels) goes through here before
it is stored.
"""
import re
from typing import Optional

import bleach


# Allowed HTML tags for event descriptions
ALLOWED_TAGS = [
    'p', 'br', 'strong', 'em', 'u', 'a', 'ul', 'ol', 'li',
    'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'blockquote', 'code', 'pre'
]

ALLOWED_ATTRIBUTES = {
    'a': ['href', 'title'],
}

MAX_TITLE_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 10000
MAX_TAG_LENGTH = 50


def sanitize_text(text: Optional[str], max_length: Optional[int] = None, strip: bool = True) -> str:
    """
    Sanitize plain text input.

    - Strips leading/trailing whitespace
    - Removes control characters
    - Enforces maximum length
    """
    if text is None:
        return ""

    text = str(text)
    if strip:
        text = text.strip()

    # Remove control characters except newlines and tabs
    text = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]', '', text)

    if max_length and len(text) > max_length:
        text = text[:max_length]

    return text


def sanitize_html(html: Optional[str], max_length: Optional[int] = None) -> str:
    """Keep a small set of formatting tags, drop everything else (scripts, handlers, styles)."""
    if html is None:
        return ""

    clean = bleach.clean(
        str(html).strip(),
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        strip=True
    )

    if max_length and len(clean) > max_length:
        clean = clean[:max_length]

    return clean


def sanitize_title(title: Optional[str]) -> str:
    """
    Single-line, tag-free title of at most 255 characters.
    """
    text = sanitize_text(title, max_length=MAX_TITLE_LENGTH)
    # Replace newlines with spaces
    text = re.sub(r'[\r\n]+', ' ', text)
    # Collapse multiple spaces
    text = re.sub(r'\s+', ' ', text)
    return text


def sanitize_description(description: Optional[str]) -> str:
    return sanitize_html(description, max_length=MAX_DESCRIPTION_LENGTH)


def sanitize_tags(tags) -> list:
    """Clean, de-duplicate (case-insensitively) and drop empty tags, keeping order."""
    if not isinstance(tags, list):
        return tags

    seen = set()
    clean = []
    for tag in tags:
        tag = sanitize_title(tag)[:MAX_TAG_LENGTH]
        if tag and tag.lower() not in seen:
            seen.add(tag.lower())
            clean.append(tag)
    return clean


def sanitize_form_schema(schema) -> list:
    if not isinstance(schema, list):
        return schema

    clean = []
    for field in schema:
        field = dict(field)
        if 'label' in field:
            field['label'] = sanitize_title(field['label'])
        if field.get('options'):
            field['options'] = [sanitize_title(option) for option in field['options']]
        clean.append(field)
    return clean


_FIELD_SANITIZERS = {
    'title': sanitize_title,
    'description': sanitize_description,
    'venue': lambda value: sanitize_title(value) if value is not None else None,
    'tags': sanitize_tags,
    'form_schema': sanitize_form_schema,
}


def sanitize_event_fields(data: dict) -> dict:
    """Return a copy of create/edit input with the user-facing text fields cleaned."""
    clean = dict(data)
    for field, sanitizer in _FIELD_SANITIZERS.items():
        if field in clean:
            clean[field] = sanitizer(clean[field])
    return clean

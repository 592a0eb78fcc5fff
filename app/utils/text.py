import re

MAX_SLUG_LENGTH = 100


def slugify(name, max_length=MAX_SLUG_LENGTH):
    """Lowercase, collapse runs of non-alphanumerics to '-', trim edge hyphens."""
    slug = re.sub(r'[^a-z0-9]+', '-', (name or '').lower()).strip('-')
    return slug[:max_length].rstrip('-')


def numeric_suffix(base, attempt, max_length=MAX_SLUG_LENGTH):
    """'reddit', 2 -> 'reddit-2', truncating the base so the result fits max_length."""
    suffix = f'-{attempt}'
    return base[:max_length - len(suffix)].rstrip('-') + suffix

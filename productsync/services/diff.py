# productsync/services/diff.py


def diff(before: dict, after: dict) -> dict:
    """
    Fields of `after` whose value differs from `before` (deep equality).
    Keys only present in `before` are not reported; keys missing from
    `before` always are, so a cache written before a field existed still
    picks the field up.
    """
    return {k: v for k, v in after.items() if k not in before or before[k] != v}

"""Cache key derivation.

A cache entry is identified by the MD5 digest of its mount path and branch,
stored under the repository namespace. The same directory cached on two
branches gets two independent entries; renaming a branch starts a cold cache.
"""

import hashlib
import posixpath


def derive_key(mount: str, branch: str) -> str:
    """Compute the cache key for a mount on a branch.

    The mount and branch are hashed in that order with no separator.

    Args:
        mount: Mount path as written in the configuration (e.g. "./dist")
        branch: Branch name

    Returns:
        Lowercase hex MD5 digest (32 characters)
    """
    digest = hashlib.md5()
    for part in (mount, branch):
        digest.update(part.encode("utf-8"))
    return digest.hexdigest()


def remote_path(repo: str, key: str) -> str:
    """Join the repository namespace and a cache key into an object key.

    Args:
        repo: Repository namespace (e.g. "octocat/hello-world"), may be empty
        key: Cache key from derive_key

    Returns:
        Object key such as "octocat/hello-world/<key>"; "." segments and
        repeated slashes are collapsed
    """
    repo = repo.strip("/")
    if not repo:
        return key
    return posixpath.normpath(posixpath.join(repo, key))

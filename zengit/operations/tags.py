"""Tag listing, creation and deletion."""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from zengit.core.errors import CorruptObject, InvalidTagName, RefNotFound
from zengit.core.objects import Commit, Signature, Tag
from zengit.core.refs import check_ref_format

logger = logging.getLogger(__name__)

DEFAULT_TAGGER_NAME = 'Unknown'
DEFAULT_TAGGER_EMAIL = 'unknown@example.com'

MAX_PEEL_DEPTH = 16


@dataclass
class TagInfo:
    """
    A tag as reported to callers.

    For lightweight tags the commit's author stands in for the tagger,
    the commit time for the tag time, and the message is empty.
    """
    name: str
    target_commit: str
    message: str
    tagger_name: str
    tagger_email: str
    tag_time: int
    annotated: bool = False
    tag_oid: Optional[str] = None


def is_valid_tag_name(name: str) -> bool:
    return check_ref_format(name)


class TagManager:
    """Annotated and lightweight tags under refs/tags."""

    def __init__(self, repo):
        self.repo = repo

    def peel(self, oid: str) -> Tuple[str, Optional[Tag]]:
        """
        Follow tag objects down to what they finally point at.

        Returns:
            Tuple of (final object id, outermost Tag or None)
        """
        outer = None
        for _ in range(MAX_PEEL_DEPTH):
            kind, _ = self.repo.get(oid)
            if kind != 'tag':
                return oid, outer
            tag = self.repo.read_object(oid)
            if outer is None:
                outer = tag
            oid = tag.object
        raise CorruptObject(f"Tag chain starting at {oid} is too deep")

    def describe(self, name: str, oid: str) -> Optional[TagInfo]:
        target, tag = self.peel(oid)
        target_obj = self.repo.read_object(target)
        if tag is not None:
            tagger = tag.tagger
            return TagInfo(
                name=name,
                target_commit=target,
                message=tag.message,
                tagger_name=tagger.name if tagger else '',
                tagger_email=tagger.email if tagger else '',
                tag_time=tagger.timestamp if tagger else 0,
                annotated=True,
                tag_oid=oid,
            )
        if isinstance(target_obj, Commit):
            return TagInfo(
                name=name,
                target_commit=target,
                message='',
                tagger_name=target_obj.author.name,
                tagger_email=target_obj.author.email,
                tag_time=target_obj.author.timestamp,
            )
        logger.debug("Skipping tag %s pointing at a %s", name, target_obj.type)
        return None

    def list_tags(self) -> List[TagInfo]:
        """All tags pointing (directly or through tag objects) at commits, by name."""
        result = []
        for name, oid in self.repo.refs.list_tags():
            info = self.describe(name, oid)
            if info is not None:
                result.append(info)
        return result

    def tagger(self) -> Signature:
        name, email = self.repo.config.get_user_identity()
        return Signature.now(name or DEFAULT_TAGGER_NAME, email or DEFAULT_TAGGER_EMAIL)

    def create_tag(self, name: str, message: Optional[str] = None,
                   target: Optional[str] = None) -> str:
        """
        Create a tag on ``target`` (default: HEAD).

        A non-empty message makes an annotated tag object; otherwise the
        tag is a lightweight ref to the commit.

        Returns:
            Tag object id for annotated tags, commit id for lightweight ones

        Raises:
            InvalidTagName: If the name is not a valid ref name
            RefNotFound: If the target cannot be resolved
            RefAlreadyExists: If the tag exists
        """
        if not is_valid_tag_name(name):
            raise InvalidTagName(name)

        if target is None:
            commit_hash = self.repo.refs.resolve_head()
            if commit_hash is None:
                raise RefNotFound('HEAD', "no commits yet")
        else:
            resolved = self.repo.refs.resolve_reference(target)
            if resolved is None:
                raise RefNotFound(target)
            commit_hash, _ = self.peel(resolved)
        if not isinstance(self.repo.read_object(commit_hash), Commit):
            raise RefNotFound(target or 'HEAD', "does not name a commit")

        if message:
            tag = Tag.create(name, commit_hash, 'commit', self.tagger(), message)
            tag_oid = self.repo.write_object(tag)
            self.repo.refs.create_tag(name, tag_oid)
            logger.info("Created annotated tag %s on %s", name, commit_hash[:7])
            return tag_oid

        self.repo.refs.create_tag(name, commit_hash)
        logger.info("Created tag %s on %s", name, commit_hash[:7])
        return commit_hash

    def delete_tag(self, name: str) -> None:
        """
        Raises:
            InvalidTagName: If the name is not a valid tag name
            RefNotFound: If the tag doesn't exist
        """
        self.repo.refs.delete_tag(name)
        logger.info("Deleted tag %s", name)

    def resolve_tag(self, name: str) -> str:
        """Commit a tag finally points at."""
        ref_name = self.repo.refs.tag_ref(name)
        oid = self.repo.refs.resolve(ref_name)
        if oid is None:
            raise RefNotFound(ref_name)
        target, _ = self.peel(oid)
        return target

from Bio.Align import MultipleSeqAlignment
from Bio.SeqRecord import SeqRecord

from .exceptions import ConfigurationError


def copy_alignment(alignment, keep=None):
    """Returns a new alignment with the same records (optionally only ``keep`` ids) and annotations."""
    records = [record for record in alignment if keep is None or record.id in keep]
    new_alignment = MultipleSeqAlignment(records)
    new_alignment.annotations = dict(getattr(alignment, 'annotations', {}) or {})
    return new_alignment


class Cluster:
    """
    A named group of homologous sequences.

    Members are kept in insertion order as SeqRecord objects keyed by id. The
    records may have no sequence until a FASTA file is loaded. A cluster owns
    at most one alignment of its members.
    """

    def __init__(self, cluster_id, members=None, alignment=None):
        self.cluster_id = cluster_id
        self.members = {}
        self.alignment = alignment
        if members:
            self.add_members(members)

    def __repr__(self):
        return f"Cluster({self.cluster_id!r}, members={self.member_ids()!r})"

    def __len__(self):
        return len(self.members)

    def __contains__(self, member_id):
        return member_id in self.members

    @property
    def size(self):
        return len(self.members)

    def member_ids(self):
        return list(self.members)

    def add_members(self, members):
        """Adds SeqRecord objects or plain ids. Existing ids are replaced in place."""
        for member in members:
            if isinstance(member, str):
                member = SeqRecord(None, id=member, name=member, description='')
            elif not isinstance(member, SeqRecord):
                raise ConfigurationError(f"ARG. ERROR: member {member!r} for {self.cluster_id} is not a SeqRecord or id.")
            self.members[member.id] = member

    def retain_members(self, keep_ids):
        """
        Keeps only ``keep_ids`` in both the member list and the alignment.

        Returns:
            list: Ids of the removed members, in their original order.
        """
        keep_ids = set(keep_ids)
        removed = [member_id for member_id in self.members if member_id not in keep_ids]
        for member_id in removed:
            del self.members[member_id]
        if self.alignment is not None:
            self.alignment = copy_alignment(self.alignment, keep=keep_ids)
        return removed

    def copy(self):
        alignment = copy_alignment(self.alignment) if self.alignment is not None else None
        return Cluster(self.cluster_id, list(self.members.values()), alignment)

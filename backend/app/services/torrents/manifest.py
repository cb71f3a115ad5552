"""File manifest extracted from a torrent's info dict."""
from dataclasses import dataclass, field
from typing import Dict, List


@dataclass(frozen=True)
class FileEntry:
    name: str
    size: int


@dataclass
class FileManifest:
    """Catalog view of a torrent's files.

    parent_folder is the multi-file directory name ("" for single-file
    torrents). extension_counts maps the text after the last '.' of each file
    name (last path component) to the number of files carrying it; names
    without a '.' are left out of the counts but still listed and summed.
    """
    parent_folder: str
    files: List[FileEntry] = field(default_factory=list)
    extension_counts: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_entries(cls, parent_folder: str, files: List[FileEntry]) -> "FileManifest":
        counts: Dict[str, int] = {}
        for entry in files:
            basename = entry.name.rsplit("/", 1)[-1]
            if "." not in basename:
                continue
            ext = basename.rsplit(".", 1)[1]
            counts[ext] = counts.get(ext, 0) + 1
        return cls(parent_folder=parent_folder, files=list(files), extension_counts=counts)

    @property
    def total_size(self) -> int:
        return sum(entry.size for entry in self.files)

    def file_list_json(self) -> dict:
        """Shape stored in torrents.file_list."""
        return {
            "parent_folder": self.parent_folder,
            "files": [{"name": f.name, "size": f.size} for f in self.files],
        }

import pytest
from upyun_transfer.models.config import TransferOptions

from .fakes import FakeStorage


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def transfer_options() -> TransferOptions:
    return TransferOptions(progress=False, max_resume_put_tries=3)


@pytest.fixture
def listing_tree(storage) -> FakeStorage:
    """
    /root
    ├── a.txt
    ├── dir1
    │   ├── b.txt
    │   └── sub
    │       └── c.txt
    ├── empty
    └── z.txt
    """
    storage.add_file("/root/a.txt", b"a")
    storage.add_file("/root/dir1/b.txt", b"bb")
    storage.add_file("/root/dir1/sub/c.txt", b"ccc")
    storage.add_dir("/root/empty")
    storage.add_file("/root/z.txt", b"zzzz")
    return storage

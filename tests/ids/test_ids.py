import re
import time

from docmap.structs.ids import generate_id


def test_format():
    assert re.fullmatch(r'[0-9a-f]{24}', generate_id())


def test_uniqueness():
    ids = [generate_id() for _ in range(1000)]
    assert len(set(ids)) == len(ids)


def test_timestamps():
    before = int(time.time())
    id = generate_id()
    after = int(time.time())
    assert before <= int(id[:8], 16) <= after


def test_same_process_part():
    assert generate_id()[8:18] == generate_id()[8:18]


def test_ids_of_new_documents_are_generated(mocker, User):
    generate = mocker.patch('docmap.structs.ids.generate_id', return_value='0' * 24)
    user = User({'name': 'John'})
    assert user.id == '0' * 24
    generate.assert_called_once_with()

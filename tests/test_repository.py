import json

from repository import ImageRepository, process_tags, tag_pattern


def test_insert_if_absent_keeps_first_writer(repository: ImageRepository, make_record):
    first = make_record(path="/photos/trip/a.jpg")
    duplicate = make_record(path="/photos/elsewhere/a-copy.jpg", folder_name="elsewhere")

    assert repository.insert_if_absent(first) == 1
    assert repository.insert_if_absent(duplicate) == 0

    assert repository.count_all() == 1
    assert repository.get_by_hash("a" * 64).path == "/photos/trip/a.jpg"


def test_upsert_overwrites_metadata_but_not_tags(repository, make_record):
    repository.insert_if_absent(make_record())
    repository.add_tags("a" * 64, ["beach"])

    rows = repository.upsert_by_hash(
        make_record(path="/photos/moved/a.jpg", folder_name="moved", width=10, height=20)
    )

    assert rows == 1
    assert repository.count_all() == 1
    record = repository.get_by_hash("a" * 64)
    assert (record.path, record.folder_name, record.width, record.height) == (
        "/photos/moved/a.jpg",
        "moved",
        10,
        20,
    )
    assert record.tag_list() == ["beach"]


def test_upsert_inserts_new_hash(repository, make_record):
    assert repository.upsert_by_hash(make_record(hash="b" * 64)) == 1
    assert repository.all_hashes() == ["b" * 64]


def test_names_are_lowercased_on_write(repository, make_record):
    repository.insert_if_absent(make_record(filename="IMG_001", folder_name="Trip", extension="JPG"))
    record = repository.get_by_hash("a" * 64)
    assert (record.filename, record.folder_name, record.extension) == ("img_001", "trip", "jpg")


def test_get_by_hash_missing_returns_none(repository):
    assert repository.get_by_hash("f" * 64) is None


def test_folder_queries(repository, make_record):
    for i in range(3):
        repository.insert_if_absent(
            make_record(hash=f"{i}" * 64, path=f"/photos/trip/{i}.jpg", folder_name="trip")
        )
    repository.insert_if_absent(
        make_record(hash="9" * 64, path="/other/pets/cat.png", folder_name="pets", root="/other", extension="png")
    )

    assert repository.count_by_folder("trip") == 3
    assert [r.path for r in repository.paged("trip", 2, 1)] == ["/photos/trip/1.jpg", "/photos/trip/2.jpg"]
    assert [(f.folder_name, f.count) for f in repository.folders("%ri%")] == [("trip", 3)]
    assert [f.folder_name for f in repository.folders(root="/other")] == ["pets"]
    assert repository.folder_by_name("pets")[0].root == "/other"
    assert repository.roots() == ["/other", "/photos"]
    summary = {r.root: (r.count, r.folder_count) for r in repository.roots_summary()}
    assert summary == {"/other": (1, 1), "/photos": (3, 1)}


def test_random_filters(repository, make_record):
    repository.insert_if_absent(make_record(hash="1" * 64, folder_name="trip"))
    repository.insert_if_absent(make_record(hash="2" * 64, folder_name="pets", extension="png"))

    assert [r.hash for r in repository.random(folder_name="pets", size=5)] == ["2" * 64]
    assert [r.hash for r in repository.random(extension="JPG", size=5)] == ["1" * 64]
    assert len(repository.random(size=5)) == 2
    assert repository.random(folder_name="nothing") == []


def test_tags(repository, make_record):
    repository.insert_if_absent(make_record(hash="1" * 64, folder_name="trip"))
    repository.insert_if_absent(make_record(hash="2" * 64, folder_name="trip"))
    repository.insert_if_absent(make_record(hash="3" * 64, folder_name="pets"))

    assert repository.add_tags("1" * 64, [" sea ", "sun", "sea", ""]) == 1
    assert repository.add_tags_folder("pets", ["cat"]) == 1

    assert repository.get_by_hash("1" * 64).tag_list() == ["sea", "sun"]
    assert repository.all_tags() == ["cat", "sea", "sun"]
    assert repository.all_tags("trip") == ["sea", "sun"]
    assert [r.hash for r in repository.random(tag="cat", size=5)] == ["3" * 64]
    assert [r.hash for r in repository.random(tag="sun", size=5)] == ["1" * 64]


def test_process_tags():
    assert json.loads(process_tags(["b", " a", "b ", "  "])) == ["b", "a"]


def test_tag_pattern_escapes_wildcards():
    assert tag_pattern("a_b") == '%"a\\_b"%'
    assert tag_pattern("100%") == '%"100\\%"%'


def test_tag_filter_matches_literally(repository, make_record):
    tagged = {
        "1" * 64: ["a_b"],
        "2" * 64: ["axb"],
        "3" * 64: ["100%"],
        "4" * 64: ["100 days"],
        "5" * 64: ['say "hi"', "back\\slash"],
    }
    for h, tags in tagged.items():
        repository.insert_if_absent(make_record(hash=h))
        repository.add_tags(h, tags)

    def matching(tag):
        return [r.hash for r in repository.random(tag=tag, size=10)]

    assert matching("a_b") == ["1" * 64]
    assert matching("100%") == ["3" * 64]
    assert matching('say "hi"') == ["5" * 64]
    assert matching("back\\slash") == ["5" * 64]
    assert matching("%") == []


def test_delete_by_folder(repository, make_record):
    repository.insert_if_absent(make_record(hash="1" * 64, folder_name="trip"))
    repository.insert_if_absent(make_record(hash="2" * 64, folder_name="trip"))
    repository.insert_if_absent(make_record(hash="3" * 64, folder_name="pets"))

    assert repository.delete_by_folder("trip") == 2
    assert repository.count_all() == 1
    assert repository.delete_by_folder("trip") == 0

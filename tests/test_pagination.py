from datetime import datetime, timedelta, timezone
import pytest

from app.exceptions import BadRequestException
from app.image_service.models import ImageMeta, format_timestamp
from app.image_service.pagination import (
    Cursor,
    MetadataFilter,
    SortOrder,
    paginate,
    parse_metadata_filters,
    parse_page_size,
    stringify_value,
)
from app.image_service.service import cursor_for, fetch_images_page, image_to_item

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeImagesDB:
    """In-memory stand-in for DynamoDBService.iter_images ordered by sort_key."""

    def __init__(self, images):
        self.items = [image_to_item(image) for image in images]

    def iter_images(self, account_id, after_sort_key=None, descending=False):
        rows = sorted(
            (item for item in self.items if item["account_id"] == account_id),
            key=lambda item: item["sort_key"],
            reverse=descending,
        )
        for item in rows:
            if after_sort_key is not None:
                if descending and item["sort_key"] >= after_sort_key:
                    continue
                if not descending and item["sort_key"] <= after_sort_key:
                    continue
            yield item


def make_images(count, meta_for=lambda i: {}):
    return [
        ImageMeta(
            image_id=f"img-{i:03d}",
            account_id="acc1",
            meta=meta_for(i),
            uploaded_at=BASE_TIME + timedelta(seconds=i),
        )
        for i in range(count)
    ]


def collect_pages(db, page_size, **kwargs):
    pages, cursor = [], ""
    while True:
        page, cursor = fetch_images_page(db, "acc1", cursor=cursor, page_size=page_size, **kwargs)
        pages.append([image.image_id for image in page])
        if not cursor:
            return pages


# ------------------------------
# keyset pagination
# ------------------------------

def test_pages_cover_all_images_without_overlap():
    db = FakeImagesDB(make_images(25))
    pages = collect_pages(db, 10)
    assert [len(p) for p in pages] == [10, 10, 5]
    flat = [image_id for page in pages for image_id in page]
    assert flat == [f"img-{i:03d}" for i in range(25)]


def test_full_last_page_is_followed_by_empty_page():
    db = FakeImagesDB(make_images(20))
    pages = collect_pages(db, 10)
    assert [len(p) for p in pages] == [10, 10, 0]


def test_descending_order():
    db = FakeImagesDB(make_images(25))
    pages = collect_pages(db, 10, sort_order=SortOrder.DESC)
    flat = [image_id for page in pages for image_id in page]
    assert flat == [f"img-{i:03d}" for i in reversed(range(25))]


def test_equal_timestamps_break_ties_on_id():
    images = [
        ImageMeta(image_id=image_id, account_id="acc1", uploaded_at=BASE_TIME)
        for image_id in ("c", "a", "b", "d")
    ]
    pages = collect_pages(FakeImagesDB(images), 3)
    assert pages == [["a", "b", "c"], ["d"]]


def test_other_accounts_are_invisible():
    images = make_images(3) + [ImageMeta(image_id="x", account_id="acc2", uploaded_at=BASE_TIME)]
    page, cursor = fetch_images_page(FakeImagesDB(images), "acc1", page_size=10)
    assert [image.image_id for image in page] == ["img-000", "img-001", "img-002"]
    assert cursor == ""


def test_filter_applies_before_page_size():
    db = FakeImagesDB(make_images(30, lambda i: {"parity": "even" if i % 2 == 0 else "odd"}))
    pages = collect_pages(db, 4, metadata_filter=MetadataFilter("parity", "eq", "even"))
    flat = [image_id for page in pages for image_id in page]
    assert flat == [f"img-{i:03d}" for i in range(0, 30, 2)]
    assert all(len(page) == 4 for page in pages[:-1])


def test_filter_excludes_images_without_key():
    db = FakeImagesDB(make_images(6, lambda i: {"tag": "a"} if i < 3 else {}))
    page, _ = fetch_images_page(db, "acc1", page_size=10, metadata_filter=MetadataFilter("tag", "ne", "b"))
    assert [image.image_id for image in page] == ["img-000", "img-001", "img-002"]


def test_paginate_rejects_non_positive_page_size():
    with pytest.raises(ValueError):
        paginate([], 0, cursor_for)


# ------------------------------
# cursors
# ------------------------------

def test_cursor_round_trip():
    cursor = Cursor(uploaded=format_timestamp(BASE_TIME), image_id="img-1")
    token = cursor.encode()
    assert "=" not in token
    assert Cursor.decode(token) == cursor


@pytest.mark.parametrize("token", ["!!!", "bm90LWEtY3Vyc29y", "MjAyNC0wMS0wMVQwMDowMDowMC4wMDAwMDBafA"])
def test_malformed_cursor(token):
    with pytest.raises(BadRequestException):
        Cursor.decode(token)


def test_malformed_cursor_rejected_by_listing():
    with pytest.raises(BadRequestException):
        fetch_images_page(FakeImagesDB([]), "acc1", cursor="not-a-cursor")


# ------------------------------
# query parsing
# ------------------------------

def test_parse_metadata_filters():
    params = [
        ("per_page", "10"),
        ("metadata[color][eq]", "red"),
        ("metadata[size][gte]", "10"),
    ]
    filters = parse_metadata_filters(params)
    assert filters == [
        MetadataFilter("color", "eq", "red"),
        MetadataFilter("size", "gte", "10"),
    ]


def test_parse_metadata_filters_unknown_operator():
    with pytest.raises(BadRequestException):
        parse_metadata_filters([("metadata[color][like]", "re")])


def test_parse_metadata_filters_limit():
    params = [(f"metadata[k{i}][eq]", "v") for i in range(6)]
    with pytest.raises(BadRequestException):
        parse_metadata_filters(params)
    assert len(parse_metadata_filters(params[:5])) == 5


@pytest.mark.parametrize(
    "value, expected",
    [(None, 20), ("", 20), ("0", 20), ("-3", 20), ("abc", 20), ("7", 7), ("100", 100), ("500", 100)],
)
def test_parse_page_size(value, expected):
    assert parse_page_size(value) == expected


@pytest.mark.parametrize(
    "value, expected",
    [(None, SortOrder.ASC), ("asc", SortOrder.ASC), ("DESC", SortOrder.DESC), ("sideways", SortOrder.ASC)],
)
def test_sort_order_parse(value, expected):
    assert SortOrder.parse(value) is expected


@pytest.mark.parametrize(
    "value, expected",
    [
        ("red", "red"),
        (True, "true"),
        (False, "false"),
        (3, "3"),
        (3.0, "3"),
        (2.5, "2.5"),
        (None, "<nil>"),
        ({"b": 1, "a": 2}, '{"a":2,"b":1}'),
    ],
)
def test_stringify_value(value, expected):
    assert stringify_value(value) == expected


def test_comparison_operators_compare_strings():
    meta = {"n": 9}
    assert MetadataFilter("n", "gt", "10").matches(meta)
    assert not MetadataFilter("n", "lt", "10").matches(meta)
    assert MetadataFilter("n", "lte", "9").matches(meta)
    assert MetadataFilter("n", "gte", "9").matches(meta)

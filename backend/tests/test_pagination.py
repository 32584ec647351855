import pytest

from showcase.core.config import settings
from showcase.services.pagination import PageRequest, build_page, expected_page_length, has_more, page_request


def test_page_request_defaults_and_offset() -> None:
    request = page_request()

    assert request == PageRequest(page=1, page_size=settings.catalog_page_size)
    assert request.offset == 0
    assert PageRequest(page=3, page_size=12).offset == 24


@pytest.mark.parametrize(("page", "page_size"), [(0, 12), (-1, 12), (1, 0), (1, 10_000)])
def test_page_request_rejects_out_of_range_values(page: int, page_size: int) -> None:
    with pytest.raises(ValueError):
        page_request(page, page_size)


def test_has_more_and_page_length_agree_with_page_math() -> None:
    for total in range(0, 30):
        for page_size in (1, 5, 12):
            for page in range(1, 8):
                request = PageRequest(page=page, page_size=page_size)
                length = expected_page_length(request, total)
                assert length == min(page_size, max(0, total - (page - 1) * page_size))
                assert has_more(request, length, total) is (page * page_size < total)


def test_build_page_reports_total_and_has_more() -> None:
    request = PageRequest(page=1, page_size=2)

    page = build_page([], total=5, request=request)
    assert page.total == 5
    assert page.items == []
    assert page.has_more is True

    last = build_page([], total=0, request=request)
    assert last.has_more is False

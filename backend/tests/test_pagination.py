import unittest

from backend.errors import ValidationError
from backend.pagination import paginate, skip_for


class PaginationTests(unittest.TestCase):
    def test_last_page_window(self) -> None:
        window = paginate(page=5, limit=20, total_items=95)

        self.assertEqual(window.total_pages, 5)
        self.assertEqual(window.skip, 80)
        self.assertFalse(window.has_next_page)
        self.assertTrue(window.has_prev_page)

    def test_first_page_window(self) -> None:
        window = paginate(page=1, limit=20, total_items=95)

        self.assertEqual(window.skip, 0)
        self.assertTrue(window.has_next_page)
        self.assertFalse(window.has_prev_page)

    def test_empty_collection(self) -> None:
        window = paginate(page=1, limit=10, total_items=0)

        self.assertEqual(window.total_pages, 0)
        self.assertFalse(window.has_next_page)
        self.assertEqual(
            window.as_response(),
            {
                "currentPage": 1,
                "totalPages": 0,
                "totalItems": 0,
                "itemsPerPage": 10,
                "hasNextPage": False,
                "hasPrevPage": False,
            },
        )

    def test_out_of_range_window_is_rejected(self) -> None:
        for page, limit in ((0, 20), (-1, 20), (1, 0), (1, 101)):
            with self.subTest(page=page, limit=limit):
                with self.assertRaises(ValidationError):
                    paginate(page=page, limit=limit, total_items=10)

    def test_skip_for(self) -> None:
        self.assertEqual(skip_for(3, 25), 50)


if __name__ == "__main__":
    unittest.main()

"""Tests for natural ordering."""

from srv.core.natsort import natural_key, natural_less


class TestNaturalLess:
    """Tests for natural_less()."""

    def test__embedded_numbers__compare_numerically(self) -> None:
        """file2 sorts before file10, unlike plain string comparison."""
        assert natural_less("file2.txt", "file10.txt")
        assert not natural_less("file10.txt", "file2.txt")
        assert "file10.txt" < "file2.txt"

    def test__case__is_ignored(self) -> None:
        """Case does not affect ordering."""
        assert natural_less("apple", "Banana")
        assert not natural_less("Apple", "apple")
        assert not natural_less("apple", "Apple")

    def test__prefix__sorts_first(self) -> None:
        """A name sorts before the same name with a suffix."""
        assert natural_less("file", "file1")

    def test__multiple_numeric_runs__compare_in_order(self) -> None:
        """Each digit run is compared numerically in turn."""
        assert natural_less("v1.9.2", "v1.10.0")
        assert natural_less("v2.0", "v10.0")


class TestNaturalKey:
    """Tests for natural_key()."""

    def test__sorted__orders_like_a_human(self) -> None:
        """Sorting with natural_key gives human ordering."""
        names = ["img12.png", "img10.png", "IMG2.png", "img1.png"]

        assert sorted(names, key=natural_key) == [
            "img1.png",
            "IMG2.png",
            "img10.png",
            "img12.png",
        ]

    def test__leading_zeros__are_equal_and_stable(self) -> None:
        """Numerically equal names keep their original order."""
        names = ["a01", "a1", "a001"]

        assert sorted(names, key=natural_key) == ["a01", "a1", "a001"]

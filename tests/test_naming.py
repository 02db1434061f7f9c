"""Tests for clipper.services.naming."""

from clipper.services.naming import (
    archive_filename,
    file_extension,
    folder_name,
    image_filename,
    sanitize_title,
    unique_folder_names,
)


class TestArchiveFilename:
    def test_two_topics(self):
        assert archive_filename(["Bananas", "Mushrooms"], "Extracted") == "Bananas_Mushrooms_Extracted.zip"

    def test_names_are_sanitized(self):
        assert archive_filename(["Blue Java!", "Señorita"], "Originals") == "BlueJava_Seorita_Originals.zip"

    def test_long_names_are_truncated_with_marker(self):
        names = ["Cavendish Bananas", "Gros Michel Bananas", "Lady Finger Bananas", "Red Bananas"]
        filename = archive_filename(names, "Extracted")
        base = filename[: -len("_Extracted.zip")]
        assert base.endswith("_et_al")
        assert len(base) == 50 + len("_et_al")

    def test_exactly_fifty_is_not_truncated(self):
        name = "A" * 50
        assert archive_filename([name], "Originals") == f"{name}_Originals.zip"

    def test_empty_selection_uses_timestamp(self):
        assert archive_filename([], "Extracted").startswith("pd_archive_")


class TestFileNames:
    def test_folder_collapses_whitespace(self):
        assert folder_name("Blue   Java bananas") == "Blue_Java_bananas"

    def test_sanitize_title(self):
        assert sanitize_title("Banana (Musa) – plate 3.jpg") == "Banana_Musa__plate_3jpg"

    def test_extracted_is_png(self):
        assert file_extension("https://example.com/a.jpeg", extracted=True) == "png"

    def test_original_extension_kept(self):
        assert file_extension("https://example.com/path/Plate.TIF?x=1", extracted=False) == "tif"

    def test_missing_extension_defaults_to_jpg(self):
        assert file_extension("https://archive.org/services/img/banana", extracted=False) == "jpg"

    def test_iiif_url(self):
        assert file_extension("https://www.artic.edu/iiif/2/abc/full/843,/0/default.jpg", False) == "jpg"

    def test_zero_padded_index(self):
        assert image_filename(3, "Red Banana", "https://x.org/r.png", False) == "03_Red_Banana.png"
        assert image_filename(12, "Red Banana", "https://x.org/r.png", True) == "12_Red_Banana.png"

    def test_repeated_topic_names_get_suffixes(self):
        assert unique_folder_names(["Bananas", "Mushrooms", "Bananas", "Bananas"]) == [
            "Bananas",
            "Mushrooms",
            "Bananas_2",
            "Bananas_3",
        ]

    def test_suffix_skips_existing_folder(self):
        assert unique_folder_names(["Bananas_2", "Bananas", "Bananas"]) == [
            "Bananas_2",
            "Bananas",
            "Bananas_3",
        ]

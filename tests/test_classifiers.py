from site_extractor.services.classifiers import detect_industry, detect_language


def test_industry_high_confidence_on_two_hits():
    result = detect_industry("The best sushi restaurant in town. Book a reservation today!")
    assert result.detected
    assert result.industry == "restaurant"
    assert result.confidence == "high"
    assert set(result.matched_keywords) == {"restaurant", "reservation"}


def test_industry_medium_on_single_hit():
    result = detect_industry("Acme Dental")
    assert (result.industry, result.confidence) == ("dental", "medium")


def test_industry_partial_word_is_low_confidence():
    result = detect_industry("Los mejores restaurantes de Madrid")
    assert (result.industry, result.confidence) == ("restaurant", "low")


def test_industry_category_hint():
    result = detect_industry("Fresh pizza delivered hot")
    assert (result.industry, result.confidence) == ("restaurant", "low")
    assert result.matched_keywords == ["pizza"]


def test_industry_not_detected():
    assert not detect_industry("").detected
    assert not detect_industry("Hello world").detected
    assert detect_industry(None).industry is None


def test_language_scores():
    es = detect_language("Creamos páginas web para tu negocio")
    assert es.language == "es"
    assert es.spanish_score > es.english_score

    en = detect_language("We build modern websites for your business")
    assert en.language == "en"
    assert 0 < en.confidence <= 1


def test_declared_language_wins():
    result = detect_language("Creamos páginas web para tu negocio", declared="en-US")
    assert result.language == "en"
    assert result.confidence == 1.0


def test_language_of_empty_text():
    result = detect_language("")
    assert result.language == "es"
    assert result.confidence == 0.0

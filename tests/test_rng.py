from dungeon_engine.rng import SeededRandom, SeededRandomFactory, build_seed


def test_same_seed_same_sequence():
    a = SeededRandomFactory().create("hero:event:1")
    b = SeededRandomFactory().create("hero:event:1")
    assert [a.next() for _ in range(20)] == [b.next() for _ in range(20)]


def test_distinct_seeds_are_not_correlated():
    a = SeededRandom("hero:event:1")
    b = SeededRandom("hero:event:2")
    assert [a.next() for _ in range(5)] != [b.next() for _ in range(5)]


def test_values_in_unit_interval():
    rng = SeededRandom("hero:battle:7:3")
    for _ in range(500):
        v = rng.next()
        assert 0.0 <= v < 1.0


def test_build_seed_format():
    assert build_seed("hero", "event", 3) == "hero:event:3"
    assert build_seed("hero", "battle", 3, 12) == "hero:battle:3:12"
    assert build_seed(42, "level-up", 0) == "42:level-up:0"

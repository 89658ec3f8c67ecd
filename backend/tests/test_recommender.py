import random
from collections import defaultdict

import pytest

from movie_catalog import recommender


def ids(movies):
    return {m.id for m in movies}


def expected_popular(movies, ratings, user):
    """Reference ordering for the popularity fallback, computed in Python."""
    by_movie = defaultdict(list)
    for r in ratings:
        by_movie[r.movie_id].append(r.rating)
    averages = {
        m.id: (sum(by_movie[m.id]) / len(by_movie[m.id]) if by_movie[m.id] else 0)
        for m in movies
    }
    pool = sorted(movies, key=lambda m: (-averages[m.id], m.id))
    pool = pool[: recommender.POPULAR_POOL_SIZE]
    rated = {r.movie_id for r in ratings if r.user_id == user.id}
    return [m.id for m in pool if m.id not in rated][: recommender.RECOMMENDATION_LIMIT]


# Content-based


def test_content_based_without_high_ratings_is_empty(db, make_user, make_movie, rate):
    user = make_user("alice")
    rate(user, make_movie("Meh", "Action"), 3)
    make_movie("Other", "Action")

    assert recommender.recommend_content_based(db, user.id) == []
    assert recommender.content_based_candidates(db, user.id) == []


def test_content_based_matches_liked_genre_substrings(db, make_user, make_movie, rate):
    user = make_user("alice")
    liked = make_movie("A", "Action")
    disliked = make_movie("B", "Drama")
    rate(user, liked, 5)
    rate(user, disliked, 2)

    action_comedy = make_movie("C", "Action, Comedy")
    make_movie("D", "Drama")
    action_adventure = make_movie("E", "Action-Adventure")
    make_movie("F", "Comedy")

    result = recommender.recommend_content_based(db, user.id)

    assert ids(result) == {action_comedy.id, action_adventure.id}


def test_content_based_excludes_movies_rated_at_any_value(db, make_user, make_movie, rate):
    user = make_user("alice")
    rate(user, make_movie("A", "Horror"), 4)
    hated = make_movie("B", "Horror")
    rate(user, hated, 1)
    fresh = make_movie("C", "Horror")

    assert ids(recommender.recommend_content_based(db, user.id)) == {fresh.id}


def test_content_based_is_case_insensitive(db, make_user, make_movie, rate):
    user = make_user("alice")
    rate(user, make_movie("A", "Sci-Fi"), 5)
    lower = make_movie("B", "sci-fi, thriller")

    assert ids(recommender.recommend_content_based(db, user.id)) == {lower.id}


def test_content_based_caps_results_but_keeps_stable_candidates(
    db, make_user, make_movie, rate
):
    user = make_user("alice")
    rate(user, make_movie("Seed", "Western"), 5)
    for i in range(15):
        make_movie(f"Western {i}", "Western")

    candidates = recommender.content_based_candidates(db, user.id)
    first = recommender.recommend_content_based(db, user.id, rng=random.Random(1))
    second = recommender.recommend_content_based(db, user.id, rng=random.Random(2))

    assert len(candidates) == 15
    assert len(first) == recommender.RECOMMENDATION_LIMIT
    assert ids(first) <= ids(candidates)
    assert ids(second) <= ids(candidates)
    assert ids(recommender.content_based_candidates(db, user.id)) == ids(candidates)


def test_content_based_ignores_blank_genres(db, make_user, make_movie, rate):
    user = make_user("alice")
    rate(user, make_movie("No genre", None), 5)
    rate(user, make_movie("Blank genre", "  "), 5)
    make_movie("Anything", "Drama")

    assert recommender.recommend_content_based(db, user.id) == []


# Collaborative


def test_collaborative_cold_start_uses_popularity(db, make_user, make_movie, rate):
    user = make_user("newbie")
    critic = make_user("critic")
    movies = [make_movie(f"M{i}", "Drama") for i in range(25)]

    ratings = []
    for i, movie in enumerate(movies[:18]):
        ratings.append(rate(critic, movie, (i % 5) + 1))
    ratings.append(rate(user, movies[4], 5))
    ratings.append(rate(user, movies[9], 2))
    ratings.append(rate(user, movies[20], 3))

    result = recommender.recommend_collaborative(db, user.id)

    assert [m.id for m in result] == expected_popular(movies, ratings, user)
    assert len(result) <= recommender.RECOMMENDATION_LIMIT
    assert not ids(result) & {movies[4].id, movies[9].id, movies[20].id}


def test_collaborative_cold_start_ignores_peer_signal(db, make_user, make_movie, rate):
    user = make_user("newbie")
    peer = make_user("peer")
    shared = make_movie("Shared", "Drama")
    niche = make_movie("Niche", "Drama")
    popular = [make_movie(f"Hit {i}", "Drama") for i in range(12)]

    rate(user, shared, 5)
    rate(peer, shared, 5)
    rate(peer, niche, 4)
    for movie in popular:
        rate(peer, movie, 5)

    result = recommender.recommend_collaborative(db, user.id)

    # niche averages 4 and never makes the top ten behind the 5-star hits
    assert niche.id not in ids(result)
    assert [m.id for m in result] == [m.id for m in popular[:10]]


def test_collaborative_finds_movies_liked_by_peers(db, make_user, make_movie, rate):
    u1 = make_user("u1")
    u2 = make_user("u2")
    a = make_movie("A", "Action")
    b = make_movie("B", "Comedy")
    rate(u1, a, 5)
    rate(u2, a, 4)
    rate(u1, b, 5)
    for i in range(4):
        rate(u2, make_movie(f"Filler {i}", "Drama"), 3)

    assert u2.id in recommender.peer_user_ids(db, u1.id)
    assert b.id in ids(recommender.collaborative_candidates(db, u2.id))

    result = recommender.recommend_collaborative(db, u2.id)
    assert b.id in ids(result)


def test_peers_require_high_ratings_on_both_sides(db, make_user, make_movie, rate):
    me = make_user("me")
    lukewarm = make_user("lukewarm")
    a = make_movie("A", "Action")
    c = make_movie("C", "Comedy")
    rate(me, a, 5)
    rate(lukewarm, a, 2)
    rate(lukewarm, c, 5)

    assert recommender.peer_user_ids(db, me.id) == []
    assert recommender.collaborative_candidates(db, me.id) == []


def test_collaborative_backfills_with_popular_movies(db, make_user, make_movie, rate):
    me = make_user("me")
    peer = make_user("peer")
    seen = [make_movie(f"Seen {i}", "Drama") for i in range(5)]
    for movie in seen:
        rate(me, movie, 5)
    rate(peer, seen[0], 5)
    peer_pick = make_movie("Peer pick", "Drama")
    rate(peer, peer_pick, 4)
    others = [make_movie(f"Other {i}", "Drama") for i in range(15)]

    result = recommender.recommend_collaborative(db, me.id)
    result_ids = [m.id for m in result]

    assert result_ids[0] == peer_pick.id
    assert len(result_ids) == recommender.RECOMMENDATION_LIMIT
    assert len(set(result_ids)) == len(result_ids)
    assert not set(result_ids) & {m.id for m in seen}
    assert set(result_ids[1:]) <= {m.id for m in others}


def test_collaborative_caps_results_but_keeps_stable_candidates(
    db, make_user, make_movie, rate
):
    me = make_user("me")
    peer = make_user("peer")
    seen = [make_movie(f"Seen {i}", "Drama") for i in range(5)]
    for movie in seen:
        rate(me, movie, 5)
    rate(peer, seen[0], 5)
    liked = [make_movie(f"Liked {i}", "Drama") for i in range(15)]
    for i, movie in enumerate(liked):
        rate(peer, movie, 4 + i % 2)

    candidates = recommender.collaborative_candidates(db, me.id)
    first = recommender.recommend_collaborative(db, me.id, rng=random.Random(1))
    second = recommender.recommend_collaborative(db, me.id, rng=random.Random(2))

    assert ids(candidates) == ids(liked)
    assert ids(recommender.collaborative_candidates(db, me.id)) == ids(candidates)
    assert len(first) == recommender.RECOMMENDATION_LIMIT
    assert len(second) == recommender.RECOMMENDATION_LIMIT
    assert ids(first) <= ids(candidates)
    assert ids(second) <= ids(candidates)


def test_collaborative_without_peers_falls_back_to_popular(
    db, make_user, make_movie, rate
):
    me = make_user("me")
    for i in range(5):
        rate(me, make_movie(f"Seen {i}", "Drama"), 5)
    unseen = [make_movie(f"Unseen {i}", "Drama") for i in range(3)]

    result = recommender.recommend_collaborative(db, me.id)

    assert ids(result) == {m.id for m in unseen}


# Hybrid


def test_hybrid_scores_movies_found_by_both_strategies(db, make_user, make_movie, rate):
    me = make_user("me")
    peer = make_user("peer")
    a = make_movie("A", "Action")
    rate(me, a, 5)
    rate(peer, a, 5)

    both = make_movie("Both", "Action, Thriller")
    content_only = make_movie("Content only", "Action")
    collab_only = make_movie("Collab only", "Romance")
    rate(peer, both, 5)
    rate(peer, collab_only, 4)

    result = recommender.recommend_hybrid(db, me.id)
    scores = {s.movie.id: s.score for s in result}

    assert scores == {both.id: 2, content_only.id: 1, collab_only.id: 1}
    assert result[0].movie.id == both.id
    assert [s.score for s in result] == sorted((s.score for s in result), reverse=True)


def test_hybrid_has_no_cold_start_fallback(db, make_user, make_movie, rate):
    me = make_user("me")
    critic = make_user("critic")
    for i in range(5):
        rate(critic, make_movie(f"Hit {i}", "Drama"), 5)

    assert recommender.recommend_hybrid(db, me.id) == []


def test_hybrid_caps_results(db, make_user, make_movie, rate):
    me = make_user("me")
    rate(me, make_movie("Seed", "Noir"), 4)
    for i in range(14):
        make_movie(f"Noir {i}", "Noir")

    result = recommender.recommend_hybrid(db, me.id)

    assert len(result) == recommender.RECOMMENDATION_LIMIT
    assert all(s.score == 1 for s in result)


@pytest.mark.parametrize(
    "strategy",
    [
        recommender.recommend_content_based,
        recommender.recommend_collaborative,
        lambda db, user_id: [s.movie for s in recommender.recommend_hybrid(db, user_id)],
    ],
)
def test_no_strategy_recommends_rated_movies(db, make_user, make_movie, rate, strategy):
    me = make_user("me")
    others = [make_user(f"other{i}") for i in range(3)]
    movies = [
        make_movie(f"M{i}", genre)
        for i, genre in enumerate(["Action", "Drama", "Action, Drama", "Comedy"] * 5)
    ]
    rng = random.Random(7)
    for i, movie in enumerate(movies):
        if i % 3 == 0:
            rate(me, movie, (i % 5) + 1)
        for other in others:
            if rng.random() < 0.5:
                rate(other, movie, rng.randint(1, 5))

    rated = {m.id for i, m in enumerate(movies) if i % 3 == 0}
    result = strategy(db, me.id)

    assert not ids(result) & rated

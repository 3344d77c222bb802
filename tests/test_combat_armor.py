import random
import unittest

import game


class ScriptedRandom(random.Random):
    def __init__(self, floats=(), ints=()):
        super().__init__(0)
        self._floats = iter(floats)
        self._ints = iter(ints)

    def random(self):
        return next(self._floats)

    def randint(self, a, b):
        return next(self._ints)

    def choice(self, seq):
        return seq[0]

    def shuffle(self, x):
        pass


def make_round(defeated=0, seed=21):
    state = game.default_state(seed=seed)
    state["progress"]["enemies_defeated"] = defeated
    game.reset_round(state)
    state["screen"] = "COMBAT"
    return state


class AttackCardTest(unittest.TestCase):
    def test_attack_hits_unarmored_enemy(self):
        state = make_round()
        # uniform 3..5 -> 4, без крита, след. карта атака; враг: 1 урона без крита
        state["_rng"] = ScriptedRandom(floats=[0.5, 0.5, 0.1, 0.9], ints=[1])

        res = game.play_card(state, False)

        rnd = state["round"]
        self.assertEqual(res["damage"], 4)
        self.assertFalse(res["crit"])
        self.assertEqual(rnd["enemy_hp"], 11)
        self.assertEqual(rnd["next_card"], "attack")
        self.assertEqual(rnd["player_def"], 4)
        self.assertEqual(res["enemy_attack"]["damage"], 1)

    def test_player_crit_doubles_damage(self):
        state = make_round()
        state["_rng"] = ScriptedRandom(floats=[0.0, 0.005, 0.9, 0.9], ints=[1])

        res = game.play_card(state, False)

        self.assertTrue(res["crit"])
        self.assertEqual(res["rolled"], 6)
        self.assertEqual(state["round"]["enemy_hp"], 9)

    def test_breakable_armor_absorbs_whole_hit(self):
        state = make_round(defeated=4)
        state["_rng"] = ScriptedRandom(floats=[0.5, 0.5, 0.1, 0.9], ints=[1])

        res = game.play_card(state, False)

        rnd = state["round"]
        self.assertTrue(res["armor_broken"])
        self.assertEqual(res["damage"], 0)
        self.assertEqual(rnd["enemy_hp"], 21)
        self.assertEqual(game.armor_state(state), {"active": False, "value": 0, "pierce": False, "broken": True})

    def test_second_hit_after_break_lands(self):
        state = make_round(defeated=4)
        state["_rng"] = ScriptedRandom(floats=[0.5, 0.5, 0.1, 0.9, 0.5, 0.5, 0.1, 0.9], ints=[1, 1])

        game.play_card(state, False)
        game.play_card(state, False)

        self.assertEqual(state["round"]["enemy_hp"], 17)

    def test_piercing_armor_reduces_every_hit(self):
        state = make_round(defeated=2)
        state["_rng"] = ScriptedRandom(floats=[0.99, 0.5, 0.1, 0.9], ints=[1])

        res = game.play_card(state, False)

        rnd = state["round"]
        self.assertEqual(res["rolled"], 4)
        self.assertEqual(res["damage"], 3)
        self.assertEqual(rnd["enemy_hp"], 15)
        self.assertTrue(rnd["armor"]["active"])
        self.assertFalse(res["armor_broken"])

    def test_piercing_armor_stronger_than_hit_deals_nothing(self):
        # броня 5 при n=10, удар 3 — урон не уходит в минус
        state = make_round(defeated=10)
        state["_rng"] = ScriptedRandom(floats=[0.0, 0.5, 0.1, 0.9], ints=[1])

        res = game.play_card(state, False)

        rnd = state["round"]
        self.assertEqual(res["rolled"], 3)
        self.assertEqual(res["damage"], 0)
        self.assertEqual(rnd["enemy_hp"], 30)
        self.assertEqual(rnd["enemy_max_hp"], 30)
        self.assertTrue(rnd["armor"]["active"])
        self.assertFalse(rnd["over"])

    def test_killing_blow_skips_enemy_turn(self):
        state = make_round()
        state["round"]["enemy_hp"] = 2
        state["_rng"] = ScriptedRandom(floats=[0.5, 0.5, 0.1])

        res = game.play_card(state, False)

        rnd = state["round"]
        self.assertEqual(rnd["enemy_hp"], 0)
        self.assertTrue(rnd["over"])
        self.assertFalse(rnd["player_dead"])
        self.assertIsNone(res["enemy_attack"])
        self.assertFalse(rnd["enemy_turn_pending"])
        self.assertEqual(rnd["player_def"], 5)


class DefenseCardTest(unittest.TestCase):
    def test_defense_gain_is_floor_of_min_plus_roll(self):
        state = make_round()
        state["progress"]["def_min"] = 2.5
        state["_rng"] = ScriptedRandom(floats=[0.9, 0.9], ints=[2, 1])

        res = game.play_card(state, True)

        self.assertEqual(res["defense_gained"], 4)
        self.assertEqual(res["card"], "defense")
        self.assertEqual(state["round"]["player_def"], 5 + 4 - 1)
        self.assertEqual(state["round"]["next_card"], "defense")


class FinishedRoundTest(unittest.TestCase):
    def test_play_after_round_over_changes_nothing(self):
        state = make_round()
        state["round"]["enemy_hp"] = 0
        state["round"]["over"] = True
        before = game.deep(state)

        res = game.play_card(state, False)
        game.play_card(state, True)

        self.assertFalse(res["played"])
        self.assertEqual(state, before)

    def test_counters_never_negative_over_many_rounds(self):
        for seed in range(30):
            state = game.default_state(seed=seed)
            rng = random.Random(seed)
            for _ in range(60):
                rnd = state["round"]
                if rnd["over"]:
                    if rnd["player_dead"]:
                        game.reset_progression(state)
                    else:
                        game.apply_upgrade(state, rng.choice(["health", "defense", "attack", "shield"]))
                        game.reset_round(state)
                    continue
                game.play_card(state, rng.random() < 0.5)
                rnd = state["round"]
                self.assertGreaterEqual(rnd["player_hp"], 0)
                self.assertGreaterEqual(rnd["player_def"], 0)
                self.assertGreaterEqual(rnd["enemy_hp"], 0)
                self.assertEqual(rnd["over"], rnd["enemy_hp"] == 0 or rnd["player_hp"] == 0)
                if rnd["player_dead"]:
                    self.assertTrue(rnd["over"])


if __name__ == "__main__":
    unittest.main()

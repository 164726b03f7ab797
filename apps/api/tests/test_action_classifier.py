from services.action_classifier import classify_action


class TestClassifyAction:
    def test_two_hits_classified(self):
        result = classify_action("Sent a text to check in with new members")
        assert result.status == "classified"
        assert result.classification_type == "personal-outreach"
        assert result.confidence == 0.95

    def test_single_hit_stays_unclassified(self):
        result = classify_action("Hosted a community barbecue")
        assert result.status == "unclassified"
        assert result.classification_type is None
        assert result.confidence == 0.75

    def test_no_hits(self):
        result = classify_action("Repainted the bathroom walls")
        assert result.status == "unclassified"
        assert result.confidence == 0.2

    def test_short_text_rejected(self):
        assert classify_action("call").status == "rejected"
        assert classify_action("").status == "rejected"
        assert classify_action(None).status == "rejected"

    def test_short_keywords_need_word_boundaries(self):
        # "pt" inside "accepted" is not a hit
        result = classify_action("accepted a new coach session request")
        assert result.classification_type == "coach-connection"

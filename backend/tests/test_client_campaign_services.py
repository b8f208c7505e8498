import pytest

from robocrm.extensions import db
from robocrm.models import Dictionary, Offer
from robocrm.services import campaign_service, client_service
from robocrm.services.campaign_service import MailingNotImplementedError
from robocrm.validation import ConflictError, ValidationError

from conftest import make_client


@pytest.fixture
def dictionaries(db_session):
    rows = {
        "retail": Dictionary(kind="client_type", name="Retail"),
        "hotel": Dictionary(kind="client_type", name="Hotel"),
        "food": Dictionary(kind="segment", name="Food"),
        "big": Dictionary(kind="size", name="Large"),
    }
    db.session.add_all(rows.values())
    db.session.commit()
    return rows


def _offer(client, stage):
    offer = Offer(offer_number=f"OFF-{client.id}-{stage}", client_id=client.id, stage=stage)
    db.session.add(offer)
    db.session.commit()
    return offer


class TestClassifications:

    def test_diff_adds_and_removes_per_kind(self, db_session, dictionaries):
        d = dictionaries
        client = client_service.create_client({
            "name": "Acme",
            "classifications": {"client_type": [d["retail"].id], "segment": [d["food"].id]},
        })

        result = client_service.set_classifications(client.id, {"client_type": [d["hotel"].id]})

        assert result["changes"] == {"client_type": {"added": [d["hotel"].id], "removed": [d["retail"].id]}}
        assert result["classifications"]["client_type"] == [d["hotel"].id]
        # Kinds not mentioned are left alone
        assert result["classifications"]["segment"] == [d["food"].id]

    def test_unchanged_set_is_a_no_op(self, db_session, dictionaries):
        d = dictionaries
        client = client_service.create_client({"name": "Acme", "classifications": {"segment": [d["food"].id]}})
        result = client_service.set_classifications(client.id, {"segment": [d["food"].id]})
        assert result["changes"] == {"segment": {"added": [], "removed": []}}

    def test_ids_must_belong_to_the_kind(self, db_session, dictionaries):
        client = client_service.create_client({"name": "Acme"})
        with pytest.raises(ValidationError, match="unknown ids"):
            client_service.set_classifications(client.id, {"client_type": [dictionaries["food"].id]})

    def test_unknown_kind(self, db_session):
        client = client_service.create_client({"name": "Acme"})
        with pytest.raises(ValidationError):
            client_service.set_classifications(client.id, {"colour": [1]})

    def test_dictionary_entry_in_use_cannot_be_deleted(self, db_session, dictionaries):
        client_service.create_client({"name": "Acme", "classifications": {"size": [dictionaries["big"].id]}})
        with pytest.raises(ConflictError):
            client_service.delete_dictionary_entry(dictionaries["big"].id)


class TestClients:

    def test_invalid_email_rejected(self, db_session):
        with pytest.raises(ValidationError, match="general_email"):
            client_service.create_client({"name": "Acme", "general_email": "not-an-address"})

    def test_search(self, db_session):
        make_client("Acme Robotics", general_email="office@acme.test")
        make_client("Beta Foods")
        assert [c.name for c in client_service.list_clients(search="acme")] == ["Acme Robotics"]

    def test_client_with_offers_cannot_be_deleted(self, db_session):
        client = make_client("Acme")
        _offer(client, "leads")
        with pytest.raises(ConflictError):
            client_service.delete_client(client.id)


class TestCampaignAudience:

    @pytest.fixture
    def audience(self, db_session, dictionaries):
        d = dictionaries
        acme = client_service.create_client({
            "name": "Acme", "city": "Warsaw", "classifications": {"client_type": [d["retail"].id]},
        })
        beta = client_service.create_client({
            "name": "Beta", "city": "Warsaw", "classifications": {"client_type": [d["hotel"].id]},
        })
        gamma = client_service.create_client({
            "name": "Gamma", "city": "Krakow", "classifications": {"client_type": [d["retail"].id]},
        })
        _offer(acme, "closed_won")
        _offer(beta, "closed_lost")
        _offer(gamma, "leads")
        return {"acme": acme, "beta": beta, "gamma": gamma}

    def _names(self, filters):
        return [c.name for c in campaign_service.filter_audience(filters)]

    def test_no_filters_selects_everyone(self, audience):
        assert self._names({}) == ["Acme", "Beta", "Gamma"]

    def test_filters_combine_with_and(self, audience, dictionaries):
        assert self._names({"city": "Warsaw", "client_type": dictionaries["retail"].id}) == ["Acme"]

    def test_all_means_no_restriction(self, audience):
        assert self._names({"city": "all", "deal_status": "all"}) == ["Acme", "Beta", "Gamma"]

    @pytest.mark.parametrize(
        "deal_status,expected",
        [("won", ["Acme"]), ("existing", ["Acme"]), ("lost", ["Beta"]), ("lead", ["Gamma"])],
    )
    def test_deal_status_maps_to_offer_stage(self, audience, deal_status, expected):
        assert self._names({"deal_status": deal_status}) == expected

    def test_unknown_filter_rejected(self, audience):
        with pytest.raises(ValidationError):
            self._names({"colour": "red"})


class TestCampaigns:

    def test_save_takes_members_from_filters(self, db_session):
        make_client("Acme", city="Warsaw")
        make_client("Beta", city="Krakow")
        campaign = campaign_service.save_campaign(name="Warsaw push", filters={"city": "Warsaw"}, user_id=None)
        assert campaign.client_count == 1
        assert campaign.filters == {"city": "Warsaw"}

    def test_name_required(self, db_session):
        make_client("Acme")
        with pytest.raises(ValidationError, match="name is required"):
            campaign_service.save_campaign(name="  ", filters={}, user_id=None)

    def test_empty_audience_rejected(self, db_session):
        with pytest.raises(ValidationError, match="select clients first"):
            campaign_service.save_campaign(name="Nobody", filters={"city": "Atlantis"}, user_id=None)

    def test_overwrite_replaces_membership(self, db_session):
        acme = make_client("Acme", city="Warsaw")
        beta = make_client("Beta", city="Krakow")
        campaign = campaign_service.save_campaign(name="All", filters={}, user_id=None)
        assert campaign.client_count == 2

        campaign = campaign_service.save_campaign(
            name="Beta only", filters={}, client_ids=[beta.id], user_id=None, campaign_id=campaign.id
        )
        assert campaign.client_count == 1
        assert [m.client_id for m in campaign.members] == [beta.id]
        assert acme.id not in [m.client_id for m in campaign.members]

    def test_mailing_stays_draft_and_send_is_not_implemented(self, db_session):
        make_client("Acme")
        campaign = campaign_service.save_campaign(name="Spring", filters={}, user_id=None)
        template = campaign_service.create_template(
            {"name": "Spring", "subject": "Hello", "body": "New robots"}, user_id=None
        )
        mailing = campaign_service.create_mailing(campaign.id, template_id=template.id, name=None)
        assert mailing.status == "draft"
        assert mailing.total_count == 1
        assert mailing.name == "Spring - Spring"

        with pytest.raises(MailingNotImplementedError):
            campaign_service.send_mailing(campaign.id, mailing.id)

        with pytest.raises(ValidationError):
            campaign_service.delete_template(template.id)

"""GraphQL documents sent to the AppSync API by the API routes."""

REFERRAL_FIELDS = """
      id
      clientName
      clientEmail
      realtorName
      realtorEmail
      source
      onboardingStatus
      inviteToken
      payoutEligible
      payoutSent
      payoutMethod
      notes
      referralCode
      partnerId
      createdAt
      updatedAt
"""

CREATE_REFERRAL = (
    """
mutation CreateReferral($input: CreateReferralInput!) {
  createReferral(input: $input) {"""
    + REFERRAL_FIELDS
    + """  }
}
"""
)

UPDATE_REFERRAL = (
    """
mutation UpdateReferral($input: UpdateReferralInput!) {
  updateReferral(input: $input) {"""
    + REFERRAL_FIELDS
    + """  }
}
"""
)

GET_REFERRAL = (
    """
query GetReferral($id: ID!) {
  getReferral(id: $id) {"""
    + REFERRAL_FIELDS
    + """  }
}
"""
)

REFERRAL_BY_INVITE_TOKEN = (
    """
query ReferralByInviteToken($inviteToken: String!, $limit: Int) {
  referralByInviteToken(inviteToken: $inviteToken, limit: $limit) {
    items {"""
    + REFERRAL_FIELDS
    + """    }
  }
}
"""
)

LIST_REFERRALS = (
    """
query ListReferrals($filter: ModelReferralFilterInput, $limit: Int, $nextToken: String) {
  listReferrals(filter: $filter, limit: $limit, nextToken: $nextToken) {
    items {"""
    + REFERRAL_FIELDS
    + """    }
    nextToken
  }
}
"""
)

REFERRAL_PARTNER_BY_CODE = """
query ReferralPartnerByCode($referralCode: String!) {
  referralPartnerByCode(referralCode: $referralCode) {
    items {
      id
      name
      type
      referralCode
      active
      totalReferrals
      totalPayouts
    }
  }
}
"""

CREATE_REFERRAL_PARTNER = """
mutation CreateReferralPartner($input: CreateReferralPartnerInput!) {
  createReferralPartner(input: $input) {
    id
    name
    type
    referralCode
    email
    phone
    active
    totalReferrals
    totalPayouts
    createdAt
    updatedAt
  }
}
"""

CREATE_REVENUE_AUDIT = """
mutation CreateRevenueAudit($input: CreateRevenueAuditInput!) {
  createRevenueAudit(input: $input) {
    id
    ownerName
    ownerEmail
    listingUrl
    marketName
    createdAt
  }
}
"""

GET_REVENUE_AUDIT = """
query GetRevenueAudit($id: ID!) {
  getRevenueAudit(id: $id) {
    id
    propertyId
    owner
    ownerName
    ownerEmail
    listingUrl
    marketName
  }
}
"""

UPDATE_REVENUE_AUDIT = """
mutation UpdateRevenueAudit($input: UpdateRevenueAuditInput!) {
  updateRevenueAudit(input: $input) {
    id
    propertyId
  }
}
"""

CREATE_PROPERTY = """
mutation CreateProperty($input: CreatePropertyInput!) {
  createProperty(input: $input) {
    id
    name
    address
    sleeps
    owner
  }
}
"""

CREATE_REVENUE_PROFILE = """
mutation CreateRevenueProfile($input: CreateRevenueProfileInput!) {
  createRevenueProfile(input: $input) {
    id
  }
}
"""

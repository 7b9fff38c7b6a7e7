"""
GraphQL documents for the Nouns Builder subgraph.

Proposals are scoped to one DAO by its lower-case token address.
"""

PROPOSAL_FIELDS = """
      id
      proposalId
      proposalNumber
      title
      description
      proposer
      timeCreated
      voteStart
      voteEnd
      snapshotBlockNumber
      forVotes
      againstVotes
      abstainVotes
      quorumVotes
      executed
      canceled
      vetoed
      queued
      transactionHash
      executableFrom
      expiresAt
"""

PROPOSALS_QUERY = """
  query GetProposals($daoAddress: String!, $first: Int!, $skip: Int!) {
    proposals(
      where: { dao: $daoAddress }
      orderBy: timeCreated
      orderDirection: desc
      first: $first
      skip: $skip
    ) {%s    }
  }
""" % PROPOSAL_FIELDS

PROPOSAL_BY_NUMBER_QUERY = """
  query GetProposalByNumber($daoAddress: String!, $proposalNumber: Int!) {
    proposals(
      where: { dao: $daoAddress, proposalNumber: $proposalNumber }
      first: 1
    ) {%s    }
  }
""" % PROPOSAL_FIELDS

PROPOSAL_BY_ID_QUERY = """
  query GetProposalById($daoAddress: String!, $proposalId: String!) {
    proposals(
      where: { dao: $daoAddress, proposalId: $proposalId }
      first: 1
    ) {%s    }
  }
""" % PROPOSAL_FIELDS

VOTES_QUERY = """
  query GetVotes($daoAddress: String!, $proposalNumber: Int!, $first: Int!, $skip: Int!) {
    proposalVotes(
      where: {
        proposal_: { dao: $daoAddress, proposalNumber: $proposalNumber }
      }
      orderBy: timestamp
      orderDirection: desc
      first: $first
      skip: $skip
    ) {
      id
      voter
      support
      weight
      reason
      timestamp
      transactionHash
      proposal {
        proposalId
        proposalNumber
        title
      }
    }
  }
"""
